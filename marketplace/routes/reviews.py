# marketplace/routes/reviews.py
from flask import Blueprint

from ..auth import authorize
from ..errors import Conflict, NotFound
from ..logger import get_logger
from ..models import Review, Role
from ..responses import created, ok, paginated
from ..validation import (PageQuery, ReviewCreateBody, ReviewUpdateBody, validate_body,
                          validate_query)

_logger = get_logger(__name__)


def create_blueprint(store, guard):
    bp = Blueprint('reviews', __name__)

    @bp.get('/product/<product_id>')
    @validate_query(PageQuery)
    def for_product(product_id, query):
        if store.get_product(product_id) is None:
            raise NotFound('Product not found')
        page = store.list_reviews(query.page, query.limit, product_id=product_id)
        average, count = store.rating_summary(product_id)
        return paginated(page, [review.to_dict() for review in page.items],
                         averageRating=average, reviewCount=count)

    @bp.get('/user/me')
    @guard.authenticate
    @validate_query(PageQuery)
    def mine(auth, query):
        page = store.list_reviews(query.page, query.limit, user_id=auth.id)
        return paginated(page, [review.to_dict(with_product=True) for review in page.items])

    @bp.post('/product/<product_id>')
    @guard.authenticate
    @authorize(Role.BUYER, Role.ADMIN)
    @validate_body(ReviewCreateBody)
    def create(auth, product_id, body):
        if store.get_product(product_id) is None:
            raise NotFound('Product not found')
        if store.find_review(product_id, auth.id):
            raise Conflict('You have already reviewed this product', 400)
        review = store.add(Review(rating=body.rating, comment=body.comment,
                                  product_id=product_id, user_id=auth.id))
        _logger.info(f'Review {review.id} on product {product_id} by {auth.email}')
        return created(review.to_dict(), 'Review created successfully')

    @bp.put('/<id>')
    @guard.authenticate
    @authorize(Role.BUYER, Role.ADMIN)
    @validate_body(ReviewUpdateBody)
    @guard.owns('review')
    def update(auth, id, body):
        review = store.update(store.get_review(id), **body.changes(nullable=('comment',)))
        return ok(review.to_dict(), 'Review updated successfully')

    @bp.delete('/<id>')
    @guard.authenticate
    @authorize(Role.BUYER, Role.ADMIN)
    @guard.owns('review')
    def delete(auth, id):
        store.delete(store.get_review(id))
        return ok(message='Review deleted successfully')

    return bp

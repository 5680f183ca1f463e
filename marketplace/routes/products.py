# marketplace/routes/products.py
from flask import Blueprint

from ..auth import authorize
from ..errors import ApiError, NotFound, ValidationFailed
from ..listing import ApprovalStatus, ProductFilter, Sort
from ..logger import get_logger
from ..models import Product, Role
from ..responses import created, ok, paginated
from ..validation import (CategoryProductsQuery, ProductCreateBody, ProductListQuery,
                          ProductSearchQuery, ProductUpdateBody, validate_body,
                          validate_query)

_logger = get_logger(__name__)


def find_product(store, product_id):
    product = store.get_product(product_id)
    if product is None:
        raise NotFound('Product not found')
    return product


def require_category(store, category_id):
    if store.get_category(category_id) is None:
        raise ValidationFailed([{'field': 'categoryId', 'message': 'Category not found'}])


def product_page(page):
    return paginated(page, [product.to_dict() for product in page.items])


def approval_filter(status):
    if status is None:
        return None
    return status == ApprovalStatus.APPROVED


def create_blueprint(store, guard):
    bp = Blueprint('products', __name__)

    def listing(auth, query, search):
        # only admins may look past the approved catalogue
        approved = approval_filter(query.status) if auth and auth.is_admin else True
        product_filter = ProductFilter(
            category_id=query.category_id or query.category,
            seller_id=query.seller_id,
            min_price=query.min_price,
            max_price=query.max_price,
            approved=approved,
            search=search,
        )
        page = store.list_products(product_filter, Sort(query.sort_by, query.sort_order),
                                   query.page, query.limit)
        return product_page(page)

    @bp.get('/')
    @guard.optional
    @validate_query(ProductListQuery)
    def index(auth, query):
        return listing(auth, query, query.search)

    @bp.get('/search')
    @guard.optional
    @validate_query(ProductSearchQuery)
    def search(auth, query):
        return listing(auth, query, query.q or query.search)

    @bp.get('/category/<category_id>')
    @validate_query(CategoryProductsQuery)
    def by_category(category_id, query):
        page = store.list_products(
            ProductFilter(category_id=category_id, approved=True),
            Sort(query.sort_by, query.sort_order),
            query.page, query.limit,
        )
        return product_page(page)

    @bp.get('/user/me')
    @guard.authenticate
    @validate_query(CategoryProductsQuery)
    def mine(auth, query):
        page = store.list_products(
            ProductFilter(seller_id=auth.id, active=None),
            Sort(query.sort_by, query.sort_order),
            query.page, query.limit,
        )
        return product_page(page)

    @bp.get('/<id>')
    def show(id):
        product = find_product(store, id)
        data = product.to_dict()
        if data['seller'] is not None:
            data['seller']['products'] = [
                other.to_dict(with_relations=False, with_reviews=False)
                for other in store.other_seller_products(product.seller_id, product.id)
            ]
        return ok(data)

    @bp.post('/')
    @guard.authenticate
    @authorize(Role.SELLER, Role.ADMIN)
    @validate_body(ProductCreateBody)
    def create(auth, body):
        require_category(store, body.category_id)
        product = Product(
            title=body.title,
            description=body.description,
            price=body.price,
            category_id=body.category_id,
            seller_id=auth.id,
            stock=body.stock,
            images=list(body.images),
            is_approved=False,
        )
        store.add(product)
        _logger.info(f'Product "{product.title}" listed by {auth.email}, pending approval')
        return created(find_product(store, product.id).to_dict(),
                       'Product created successfully and pending approval')

    @bp.put('/<id>')
    @guard.authenticate
    @authorize(Role.SELLER, Role.ADMIN)
    @validate_body(ProductUpdateBody)
    @guard.owns('product')
    def update(auth, id, body):
        changes = body.changes()
        if 'category_id' in changes:
            require_category(store, changes['category_id'])
        product = find_product(store, id)
        # every edit goes back through moderation
        store.update(product, is_approved=False, **changes)
        return ok(product.to_dict(), 'Product updated successfully and pending approval')

    @bp.delete('/<id>')
    @guard.authenticate
    @authorize(Role.SELLER, Role.ADMIN)
    @guard.owns('product')
    def delete(auth, id):
        product = find_product(store, id)
        if store.count_product_orders(product.id):
            raise ApiError('Cannot delete product with existing orders', 400)
        title = product.title
        store.delete(product)
        _logger.info(f'Product "{title}" deleted by {auth.email}')
        return ok(message='Product deleted successfully')

    return bp

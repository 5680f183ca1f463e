# marketplace/routes/categories.py
from flask import Blueprint

from ..auth import authorize
from ..errors import ApiError, Conflict, NotFound
from ..listing import ProductFilter, Sort
from ..logger import get_logger
from ..models import Category, Role
from ..responses import created, ok, paginated
from ..validation import (CategoryCreateBody, CategoryProductsQuery, CategoryUpdateBody,
                          validate_body, validate_query)

_logger = get_logger(__name__)

DUPLICATE_NAME = 'Category with this name already exists'


def find_category(store, category_id):
    category = store.get_category(category_id)
    if category is None:
        raise NotFound('Category not found')
    return category


def with_counts(store, categories, approved_only=True):
    counts = store.product_counts([c.id for c in categories], approved_only=approved_only)
    rows = []
    for category in categories:
        data = category.to_dict()
        data['productCount'] = counts.get(category.id, 0)
        rows.append(data)
    return rows


# Shared with the admin blueprint.

def create_category(store, auth, body):
    if store.find_category_by_name(body.name):
        raise Conflict(DUPLICATE_NAME, 400)
    category = store.add(Category(name=body.name, description=body.description,
                                  image=body.image))
    _logger.info(f'Category "{category.name}" created by {auth.email}')
    return created(category.to_dict(), 'Category created successfully')


def update_category(store, category_id, body):
    category = find_category(store, category_id)
    changes = body.changes(nullable=('description', 'image'))
    if 'name' in changes and store.find_category_by_name(changes['name'], exclude_id=category.id):
        raise Conflict(DUPLICATE_NAME, 400)
    store.update(category, **changes)
    return ok(category.to_dict(), 'Category updated successfully')


def delete_category(store, auth, category_id):
    category = find_category(store, category_id)
    if category.products:
        raise ApiError('Cannot delete category with existing products', 400)
    name = category.name
    store.delete(category)
    _logger.info(f'Category "{name}" deleted by {auth.email}')
    return ok(message='Category deleted successfully')


def create_blueprint(store, guard):
    bp = Blueprint('categories', __name__)

    @bp.get('/')
    def index():
        return ok(with_counts(store, store.all_categories()))

    @bp.get('/<id>')
    def show(id):
        return ok(with_counts(store, [find_category(store, id)])[0])

    @bp.get('/<id>/products')
    @validate_query(CategoryProductsQuery)
    def products(id, query):
        category = find_category(store, id)
        page = store.list_products(
            ProductFilter(category_id=category.id, approved=True),
            Sort(query.sort_by, query.sort_order),
            query.page, query.limit,
        )
        return paginated(page, {
            'category': category.to_dict(),
            'products': [p.to_dict() for p in page.items],
        })

    @bp.post('/')
    @guard.authenticate
    @authorize(Role.ADMIN)
    @validate_body(CategoryCreateBody)
    def create(auth, body):
        return create_category(store, auth, body)

    @bp.put('/<id>')
    @guard.authenticate
    @authorize(Role.ADMIN)
    @validate_body(CategoryUpdateBody)
    def update(auth, id, body):
        return update_category(store, id, body)

    @bp.delete('/<id>')
    @guard.authenticate
    @authorize(Role.ADMIN)
    def delete(auth, id):
        return delete_category(store, auth, id)

    return bp

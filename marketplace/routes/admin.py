# marketplace/routes/admin.py
from flask import Blueprint, g

from ..listing import ProductFilter, Sort
from ..logger import get_logger
from ..models import Role
from ..responses import ok, paginated
from ..validation import (AdminProductQuery, ApprovalBody, CategoryCreateBody, CategoryListQuery,
                          CategoryUpdateBody, RoleBody, UserListQuery, validate_body,
                          validate_query)
from . import categories, users
from .products import approval_filter, find_product

_logger = get_logger(__name__)


def create_blueprint(store, guard):
    bp = Blueprint('admin', __name__)
    bp.before_request(guard.require(Role.ADMIN))

    @bp.get('/dashboard')
    def dashboard():
        stats = store.dashboard()
        stats['recentOrders'] = [order.to_dict() for order in stats['recentOrders']]
        stats['topProducts'] = [product.to_dict() for product in stats['topProducts']]
        return ok(stats)

    # ---------------------------
    # Users
    # ---------------------------

    @bp.get('/users')
    @validate_query(UserListQuery)
    def list_users(query):
        return users.list_users(store, query)

    @bp.put('/users/<id>/role')
    @validate_body(RoleBody)
    def update_role(id, body):
        user = store.update(users.find_user(store, id), role=body.role)
        _logger.info(f'{user.email} is now {body.role.value} (by {g.auth.email})')
        return ok(user.to_dict(), 'User role updated successfully')

    @bp.put('/users/<id>/status')
    def toggle_status(id):
        user = users.find_user(store, id)
        store.update(user, is_active=not user.is_active)
        state = 'activated' if user.is_active else 'deactivated'
        _logger.info(f'{user.email} {state} by {g.auth.email}')
        return ok(user.to_dict(), f'User {state} successfully')

    # ---------------------------
    # Products
    # ---------------------------

    @bp.get('/products')
    @validate_query(AdminProductQuery)
    def list_products(query):
        product_filter = ProductFilter(
            category_id=query.category,
            seller_id=query.seller,
            approved=approval_filter(query.status),
            active=None,
            search=query.search,
        )
        page = store.list_products(product_filter, Sort(query.sort_by, query.sort_order),
                                   query.page, query.limit)
        return paginated(page, [product.to_dict() for product in page.items])

    @bp.put('/products/<id>/approval')
    @validate_body(ApprovalBody)
    def update_approval(id, body):
        product = store.update(find_product(store, id), is_approved=body.is_approved)
        verdict = 'approved' if body.is_approved else 'rejected'
        _logger.info(f'Product "{product.title}" {verdict} by {g.auth.email}')
        return ok(product.to_dict(), f'Product {verdict} successfully')

    # ---------------------------
    # Categories
    # ---------------------------

    @bp.get('/categories')
    @validate_query(CategoryListQuery)
    def list_categories(query):
        page = store.list_categories(query.search, Sort(query.sort_by, query.sort_order),
                                     query.page, query.limit)
        rows = categories.with_counts(store, page.items, approved_only=False)
        return paginated(page, rows)

    @bp.post('/categories')
    @validate_body(CategoryCreateBody)
    def create_category(body):
        return categories.create_category(store, g.auth, body)

    @bp.put('/categories/<id>')
    @validate_body(CategoryUpdateBody)
    def update_category(id, body):
        return categories.update_category(store, id, body)

    @bp.delete('/categories/<id>')
    def delete_category(id):
        return categories.delete_category(store, g.auth, id)

    return bp

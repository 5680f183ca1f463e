# marketplace/routes/orders.py
from flask import Blueprint

from ..auth import authorize
from ..errors import ApiError, Forbidden, NotFound
from ..logger import get_logger
from ..models import Order, OrderStatus, Role
from ..responses import created, ok, paginated
from ..validation import OrderCreateBody, OrderListQuery, OrderStatusBody, validate_body, validate_query

_logger = get_logger(__name__)


def find_order(store, order_id):
    order = store.get_order(order_id)
    if order is None:
        raise NotFound('Order not found')
    return order


def can_view(auth, order):
    return auth.is_admin or auth.id in (order.buyer_id, order.product.seller_id)


def create_blueprint(store, guard):
    bp = Blueprint('orders', __name__)

    @bp.post('/')
    @guard.authenticate
    @authorize(Role.BUYER, Role.ADMIN)
    @validate_body(OrderCreateBody)
    def create(auth, body):
        product = store.get_product(body.product_id)
        if product is None:
            raise NotFound('Product not found')
        if not (product.is_approved and product.is_active):
            raise ApiError('Product is not available for purchase', 400)
        order = store.add(Order(
            product_id=product.id,
            buyer_id=auth.id,
            quantity=body.quantity,
            total_price=product.price * body.quantity,
            status=OrderStatus.PENDING,
        ))
        _logger.info(f'Order {order.id} placed by {auth.email} for "{product.title}"')
        return created(find_order(store, order.id).to_dict(), 'Order placed successfully')

    @bp.get('/')
    @guard.authenticate
    @validate_query(OrderListQuery)
    def index(auth, query):
        scope = {}
        if auth.role == Role.BUYER:
            scope['buyer_id'] = auth.id
        elif auth.role == Role.SELLER:
            scope['seller_id'] = auth.id
        page = store.list_orders(query.page, query.limit, status=query.status, **scope)
        return paginated(page, [order.to_dict() for order in page.items])

    @bp.get('/<id>')
    @guard.authenticate
    def show(auth, id):
        order = find_order(store, id)
        if not can_view(auth, order):
            raise Forbidden('Not authorized to view this order')
        return ok(order.to_dict())

    @bp.put('/<id>/status')
    @guard.authenticate
    @validate_body(OrderStatusBody)
    def update_status(auth, id, body):
        order = find_order(store, id)
        if not (auth.is_admin or auth.id == order.product.seller_id):
            if auth.id != order.buyer_id or body.status != OrderStatus.CANCELLED:
                raise Forbidden('Not authorized to update this order')
        previous = order.status
        store.update(order, status=body.status)
        _logger.info(f'Order {order.id} {previous.value} -> {body.status.value} by {auth.email}')
        return ok(order.to_dict(), 'Order status updated successfully')

    return bp

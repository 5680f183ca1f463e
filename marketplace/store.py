# marketplace/store.py
# Data-access handle. Built by create_app around the Flask-SQLAlchemy
# extension and handed to every blueprint; views never touch the session.
import sqlite3
from datetime import timedelta

from sqlalchemy import event, func, or_, select, text
from sqlalchemy.orm import joinedload, selectinload

from .listing import (MAX_PAGE_SIZE, CategorySort, MessageBox, Page, ProductSort, SortOrder,
                      UserSort)
from .logger import get_logger
from .models import Category, ContactMessage, Order, Product, Review, Role, User, utcnow

_logger = get_logger(__name__)

PRODUCT_SORT_COLUMNS = {
    ProductSort.CREATED_AT: Product.created_at,
    ProductSort.UPDATED_AT: Product.updated_at,
    ProductSort.TITLE: Product.title,
    ProductSort.PRICE: Product.price,
    # ProductSort.RATING is computed, see Store._sort_products
}

USER_SORT_COLUMNS = {
    UserSort.CREATED_AT: User.created_at,
    UserSort.UPDATED_AT: User.updated_at,
    UserSort.EMAIL: User.email,
    UserSort.FIRST_NAME: User.first_name,
    UserSort.LAST_NAME: User.last_name,
}

CATEGORY_SORT_COLUMNS = {
    CategorySort.CREATED_AT: Category.created_at,
    CategorySort.UPDATED_AT: Category.updated_at,
    CategorySort.NAME: Category.name,
}

OWNER_COLUMNS = {
    'product': (Product, Product.seller_id),
    'review': (Review, Review.user_id),
    'order': (Order, Order.buyer_id),
    'message': (ContactMessage, ContactMessage.sender_id),
}

PRODUCT_LOAD = (
    joinedload(Product.category),
    joinedload(Product.seller),
    selectinload(Product.reviews).joinedload(Review.user),
)

REVENUE_WINDOW = timedelta(days=7)


def _sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys = ON;')
        cursor.close()


def _ordered(column, order):
    return column.asc() if order == SortOrder.ASC else column.desc()


def _contains(column, needle):
    escaped = needle.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return column.ilike(f'%{escaped}%', escape='\\')


class Store:
    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    # ---------------------------
    # Lifecycle & generic writes
    # ---------------------------

    def init_schema(self):
        engine = self.db.engine
        if not event.contains(engine, 'connect', _sqlite_foreign_keys):
            event.listen(engine, 'connect', _sqlite_foreign_keys)
        self.db.create_all()

    def drop_schema(self):
        self.db.drop_all()

    def ping(self) -> bool:
        self.session.execute(text('SELECT 1'))
        return True

    def add(self, entity):
        self.session.add(entity)
        self.session.commit()
        return entity

    def update(self, entity, **changes):
        for name, value in changes.items():
            setattr(entity, name, value)
        self.session.commit()
        return entity

    def delete(self, entity):
        self.session.delete(entity)
        self.session.commit()

    def _page(self, stmt, page, limit) -> Page:
        result = self.db.paginate(stmt, page=page, per_page=limit, max_per_page=MAX_PAGE_SIZE,
                                  error_out=False)
        return Page(items=list(result.items), total=result.total or 0, page=page,
                    limit=min(limit, MAX_PAGE_SIZE))

    def _count(self, model, *predicates) -> int:
        stmt = select(func.count()).select_from(model)
        if predicates:
            stmt = stmt.where(*predicates)
        return self.session.scalar(stmt) or 0

    # ---------------------------
    # Ownership
    # ---------------------------

    def owner_of(self, kind, resource_id):
        """Owning user id of a resource, or None when the resource does not exist."""
        model, column = OWNER_COLUMNS[kind]
        return self.session.scalar(select(column).where(model.id == resource_id))

    # ---------------------------
    # Users
    # ---------------------------

    def get_user(self, user_id):
        return self.session.get(User, user_id)

    def get_user_by_email(self, email):
        return self.session.scalar(select(User).where(User.email == email.lower()))

    def list_users(self, user_filter, sort, page, limit) -> Page:
        stmt = select(User)
        if user_filter.role:
            stmt = stmt.where(User.role == user_filter.role)
        if user_filter.active is not None:
            stmt = stmt.where(User.is_active == user_filter.active)
        if user_filter.search:
            stmt = stmt.where(or_(
                _contains(User.email, user_filter.search),
                _contains(User.first_name, user_filter.search),
                _contains(User.last_name, user_filter.search),
            ))
        stmt = stmt.order_by(_ordered(USER_SORT_COLUMNS[sort.key], sort.order), User.id)
        return self._page(stmt, page, limit)

    def user_activity(self, user_id) -> dict:
        return {
            'products': self._count(Product, Product.seller_id == user_id),
            'reviews': self._count(Review, Review.user_id == user_id),
            'orders': self._count(Order, Order.buyer_id == user_id),
            'sentMessages': self._count(ContactMessage, ContactMessage.sender_id == user_id),
            'receivedMessages': self._count(ContactMessage, ContactMessage.receiver_id == user_id),
        }

    def user_public_counts(self, user_id) -> dict:
        return {
            'products': self._count(Product, Product.seller_id == user_id,
                                    Product.is_approved.is_(True)),
            'reviews': self._count(Review, Review.user_id == user_id),
        }

    def user_stats(self, user_id) -> dict:
        average = self.session.scalar(
            select(func.avg(Review.rating)).where(Review.user_id == user_id))
        return {
            'products': {
                'total': self._count(Product, Product.seller_id == user_id),
                'approved': self._count(Product, Product.seller_id == user_id,
                                        Product.is_approved.is_(True)),
                'pending': self._count(Product, Product.seller_id == user_id,
                                       Product.is_approved.is_(False)),
                'inactive': self._count(Product, Product.seller_id == user_id,
                                        Product.is_active.is_(False)),
            },
            'reviews': {
                'total': self._count(Review, Review.user_id == user_id),
                'averageRating': float(average) if average is not None else 0,
            },
            'messages': {
                'total': self._count(ContactMessage, or_(ContactMessage.sender_id == user_id,
                                                         ContactMessage.receiver_id == user_id)),
            },
        }

    def count_users_by_role(self):
        rows = self.session.execute(
            select(User.role, func.count(User.id)).group_by(User.role)).all()
        counts = {role.value: 0 for role in Role}
        for role, count in rows:
            counts[role.value] = count
        return [{'role': role, 'count': count} for role, count in counts.items()]

    # ---------------------------
    # Categories
    # ---------------------------

    def get_category(self, category_id):
        return self.session.get(Category, category_id)

    def find_category_by_name(self, name, exclude_id=None):
        stmt = select(Category).where(Category.name_key == Category.key_for(name))
        if exclude_id:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt)

    def all_categories(self):
        return list(self.session.scalars(select(Category).order_by(Category.name.asc())))

    def list_categories(self, search, sort, page, limit) -> Page:
        stmt = select(Category)
        if search:
            stmt = stmt.where(or_(_contains(Category.name, search),
                                  _contains(Category.description, search)))
        stmt = stmt.order_by(_ordered(CATEGORY_SORT_COLUMNS[sort.key], sort.order), Category.id)
        return self._page(stmt, page, limit)

    def product_counts(self, category_ids, approved_only=False) -> dict:
        if not category_ids:
            return {}
        stmt = (select(Product.category_id, func.count(Product.id))
                .where(Product.category_id.in_(category_ids))
                .group_by(Product.category_id))
        if approved_only:
            stmt = stmt.where(Product.is_approved.is_(True))
        counts = dict(self.session.execute(stmt).all())
        return {category_id: counts.get(category_id, 0) for category_id in category_ids}

    # ---------------------------
    # Products
    # ---------------------------

    def get_product(self, product_id):
        return self.session.scalar(
            select(Product).options(*PRODUCT_LOAD).where(Product.id == product_id))

    def _product_predicates(self, product_filter):
        f = product_filter
        predicates = []
        if f.category_id:
            predicates.append(Product.category_id == f.category_id)
        if f.seller_id:
            predicates.append(Product.seller_id == f.seller_id)
        if f.approved is not None:
            predicates.append(Product.is_approved.is_(f.approved))
        if f.active is not None:
            predicates.append(Product.is_active.is_(f.active))
        if f.min_price is not None:
            predicates.append(Product.price >= f.min_price)
        if f.max_price is not None:
            predicates.append(Product.price <= f.max_price)
        if f.search:
            predicates.append(or_(_contains(Product.title, f.search),
                                  _contains(Product.description, f.search)))
        return predicates

    def _sort_products(self, stmt, sort):
        if sort.key == ProductSort.RATING:
            ratings = (select(Review.product_id, func.avg(Review.rating).label('average'))
                       .group_by(Review.product_id).subquery())
            stmt = stmt.outerjoin(ratings, ratings.c.product_id == Product.id)
            column = func.coalesce(ratings.c.average, 0)
        else:
            column = PRODUCT_SORT_COLUMNS[sort.key]
        return stmt.order_by(_ordered(column, sort.order), Product.id)

    def list_products(self, product_filter, sort, page, limit) -> Page:
        stmt = (select(Product).options(*PRODUCT_LOAD)
                .where(*self._product_predicates(product_filter)))
        return self._page(self._sort_products(stmt, sort), page, limit)

    def other_seller_products(self, seller_id, exclude_id, limit=4):
        stmt = (select(Product)
                .where(Product.seller_id == seller_id, Product.id != exclude_id,
                       Product.is_approved.is_(True), Product.is_active.is_(True))
                .order_by(Product.created_at.desc())
                .limit(limit))
        return list(self.session.scalars(stmt))

    def count_products(self, *predicates) -> int:
        return self._count(Product, *predicates)

    def count_product_orders(self, product_id) -> int:
        return self._count(Order, Order.product_id == product_id)

    # ---------------------------
    # Reviews
    # ---------------------------

    def get_review(self, review_id):
        return self.session.get(Review, review_id)

    def find_review(self, product_id, user_id):
        return self.session.scalar(
            select(Review).where(Review.product_id == product_id, Review.user_id == user_id))

    def list_reviews(self, page, limit, product_id=None, user_id=None) -> Page:
        stmt = select(Review).options(joinedload(Review.user), joinedload(Review.product))
        if product_id:
            stmt = stmt.where(Review.product_id == product_id)
        if user_id:
            stmt = stmt.where(Review.user_id == user_id)
        stmt = stmt.order_by(Review.created_at.desc(), Review.id)
        return self._page(stmt, page, limit)

    def rating_summary(self, product_id):
        average, count = self.session.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .where(Review.product_id == product_id)).one()
        return (float(average) if average is not None else 0), count

    # ---------------------------
    # Orders
    # ---------------------------

    def get_order(self, order_id):
        return self.session.scalar(
            select(Order).options(joinedload(Order.product), joinedload(Order.buyer))
            .where(Order.id == order_id))

    def list_orders(self, page, limit, buyer_id=None, seller_id=None, status=None) -> Page:
        stmt = select(Order).options(joinedload(Order.product), joinedload(Order.buyer))
        if buyer_id:
            stmt = stmt.where(Order.buyer_id == buyer_id)
        if seller_id:
            stmt = stmt.where(Order.product.has(Product.seller_id == seller_id))
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc(), Order.id)
        return self._page(stmt, page, limit)

    # ---------------------------
    # Contact messages
    # ---------------------------

    def get_message(self, message_id):
        return self.session.get(ContactMessage, message_id)

    def list_messages(self, user_id, box, page, limit, unread=None) -> Page:
        stmt = select(ContactMessage).options(joinedload(ContactMessage.sender),
                                              joinedload(ContactMessage.receiver))
        if box == MessageBox.SENT:
            stmt = stmt.where(ContactMessage.sender_id == user_id)
        else:
            stmt = stmt.where(ContactMessage.receiver_id == user_id)
        if unread is not None:
            stmt = stmt.where(ContactMessage.is_read.is_(not unread))
        stmt = stmt.order_by(ContactMessage.created_at.desc(), ContactMessage.id)
        return self._page(stmt, page, limit)

    # ---------------------------
    # Admin dashboard
    # ---------------------------

    def dashboard(self, now=None) -> dict:
        """Admin dashboard aggregates.

        The queries run one after another on the request's session. Each WSGI
        request already owns a worker thread and a session is not thread-safe,
        so there is nothing to fan them out onto.
        """
        since = (now or utcnow()) - REVENUE_WINDOW
        revenue = self.session.scalar(
            select(func.coalesce(func.sum(Order.total_price), 0)).where(Order.created_at >= since))
        recent_orders = list(self.session.scalars(
            select(Order).options(joinedload(Order.product), joinedload(Order.buyer))
            .where(Order.created_at >= since)
            .order_by(Order.created_at.desc())
            .limit(10)))

        review_counts = (select(Review.product_id, func.count(Review.id).label('reviews'))
                         .group_by(Review.product_id).subquery())
        top_products = list(self.session.scalars(
            select(Product).options(*PRODUCT_LOAD)
            .outerjoin(review_counts, review_counts.c.product_id == Product.id)
            .order_by(func.coalesce(review_counts.c.reviews, 0).desc(), Product.created_at.desc())
            .limit(5)))

        _logger.debug(f'Dashboard computed for orders since {since.isoformat()}')
        return {
            'totalUsers': self._count(User),
            'totalProducts': self.count_products(),
            'totalOrders': self._count(Order),
            'totalCategories': self._count(Category),
            'pendingProducts': self.count_products(Product.is_approved.is_(False)),
            'totalRevenue': float(revenue or 0),
            'recentOrders': recent_orders,
            'topProducts': top_products,
            'userStats': self.count_users_by_role(),
        }

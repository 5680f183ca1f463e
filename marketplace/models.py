# marketplace/models.py
import enum
import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class Role(str, enum.Enum):
    ADMIN = 'ADMIN'
    SELLER = 'SELLER'
    BUYER = 'BUYER'


class OrderStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(TimestampMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(128), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    role = db.Column(db.Enum(Role, name='user_role'), nullable=False, default=Role.BUYER)
    phone = db.Column(db.String(20))
    address = db.Column(db.String(200))
    avatar = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    products = db.relationship('Product', back_populates='seller', lazy='select')
    reviews = db.relationship('Review', back_populates='user', lazy='select')
    orders = db.relationship('Order', back_populates='buyer', lazy='select')

    def summary(self):
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'avatar': self.avatar,
        }

    def to_dict(self):
        # never exposes the password hash
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'role': self.role.value,
            'phone': self.phone,
            'address': self.address,
            'avatar': self.avatar,
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Category(TimestampMixin, db.Model):
    __tablename__ = 'categories'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(50), nullable=False)
    # casefolded copy of name; category names are unique regardless of case
    name_key = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(500))
    image = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    products = db.relationship('Product', back_populates='category', lazy='select')

    @staticmethod
    def key_for(name):
        return name.strip().casefold()

    @validates('name')
    def _sync_name_key(self, key, name):
        self.name_key = self.key_for(name)
        return name

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'image': self.image,
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Product(TimestampMixin, db.Model):
    __tablename__ = 'products'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    images = db.Column(db.JSON, nullable=False, default=list)
    stock = db.Column(db.Integer, nullable=False, default=0)
    category_id = db.Column(db.String(36), db.ForeignKey('categories.id'), nullable=False, index=True)
    seller_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    is_approved = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    category = db.relationship('Category', back_populates='products')
    seller = db.relationship('User', back_populates='products')
    reviews = db.relationship('Review', back_populates='product', cascade='all, delete-orphan',
                              order_by='Review.created_at.desc()')
    orders = db.relationship('Order', back_populates='product')

    def rating_summary(self):
        """Average rating and count over the currently loaded reviews."""
        ratings = [r.rating for r in self.reviews]
        average = sum(ratings) / len(ratings) if ratings else 0
        return average, len(ratings)

    def to_dict(self, with_relations=True, with_reviews=True):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price': float(self.price),
            'images': list(self.images or []),
            'stock': self.stock,
            'categoryId': self.category_id,
            'sellerId': self.seller_id,
            'isApproved': self.is_approved,
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if with_relations:
            data['category'] = self.category.to_dict() if self.category else None
            data['seller'] = self.seller.summary() if self.seller else None
        if with_reviews:
            average, count = self.rating_summary()
            data['reviews'] = [r.to_dict() for r in self.reviews]
            data['averageRating'] = average
            data['reviewCount'] = count
        return data


class Review(TimestampMixin, db.Model):
    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('product_id', 'user_id', name='uq_reviews_product_user'),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    product_id = db.Column(db.String(36), db.ForeignKey('products.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)

    product = db.relationship('Product', back_populates='reviews')
    user = db.relationship('User', back_populates='reviews')

    def to_dict(self, with_product=False):
        data = {
            'id': self.id,
            'rating': self.rating,
            'comment': self.comment,
            'productId': self.product_id,
            'userId': self.user_id,
            'user': {
                'id': self.user.id,
                'firstName': self.user.first_name,
                'lastName': self.user.last_name,
                'avatar': self.user.avatar,
            } if self.user else None,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if with_product and self.product:
            data['product'] = {
                'id': self.product.id,
                'title': self.product.title,
                'price': float(self.product.price),
                'images': list(self.product.images or []),
            }
        return data


class Order(TimestampMixin, db.Model):
    __tablename__ = 'orders'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.Enum(OrderStatus, name='order_status'), nullable=False,
                       default=OrderStatus.PENDING)
    product_id = db.Column(db.String(36), db.ForeignKey('products.id'), nullable=False, index=True)
    buyer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)

    product = db.relationship('Product', back_populates='orders')
    buyer = db.relationship('User', back_populates='orders')

    def to_dict(self):
        return {
            'id': self.id,
            'quantity': self.quantity,
            'totalPrice': float(self.total_price),
            'status': self.status.value,
            'productId': self.product_id,
            'buyerId': self.buyer_id,
            'product': {
                'id': self.product.id,
                'title': self.product.title,
                'price': float(self.product.price),
                'sellerId': self.product.seller_id,
            } if self.product else None,
            'buyer': {
                'id': self.buyer.id,
                'firstName': self.buyer.first_name,
                'lastName': self.buyer.last_name,
                'email': self.buyer.email,
            } if self.buyer else None,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class ContactMessage(TimestampMixin, db.Model):
    __tablename__ = 'contact_messages'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sender_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    subject = db.Column(db.String(100), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    sender = db.relationship('User', foreign_keys=[sender_id])
    receiver = db.relationship('User', foreign_keys=[receiver_id])

    def to_dict(self):
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'subject': self.subject,
            'message': self.message,
            'isRead': self.is_read,
            'sender': self.sender.summary() if self.sender else None,
            'receiver': self.receiver.summary() if self.receiver else None,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

# marketplace/validation.py
import uuid
from decimal import Decimal
from functools import wraps
from typing import Annotated, List, Literal, Optional

from flask import request
from pydantic import (AfterValidator, BaseModel, ConfigDict, EmailStr, Field, HttpUrl,
                      StringConstraints, TypeAdapter, ValidationError)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .errors import ValidationFailed
from .listing import (MAX_PAGE_SIZE, ApprovalStatus, CategorySort, MessageBox, ProductSort,
                      SortOrder, UserSort)
from .models import OrderStatus, Role
from .security import password_problems

PERSON_NAME = r"^[a-zA-ZÀ-ÿ\s'-]+$"
CATEGORY_NAME = r"^[a-zA-ZÀ-ÿ\s&'-]+$"
PHONE = r'^\+?[0-9\s\-()]{8,15}$'


def _strong_password(value: str) -> str:
    problems = password_problems(value)
    if problems:
        raise PydanticCustomError(
            'weak_password', 'Password must contain {requirements}',
            {'requirements': ', '.join(problems)},
        )
    return value


def _uuid_string(value: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise PydanticCustomError('invalid_id', 'Invalid ID')


_url_adapter = TypeAdapter(HttpUrl)


def _http_url(value: str) -> str:
    try:
        return str(_url_adapter.validate_python(value))
    except ValidationError:
        raise PydanticCustomError('invalid_url', 'Invalid URL')


def _clamp_limit(value: int) -> int:
    return min(value, MAX_PAGE_SIZE)


def _text(min_length=None, max_length=None, pattern=None):
    return Annotated[str, StringConstraints(strip_whitespace=True, min_length=min_length,
                                            max_length=max_length, pattern=pattern)]


Email = Annotated[EmailStr, AfterValidator(lambda value: value.lower())]
Password = Annotated[str, AfterValidator(_strong_password)]
PersonName = _text(2, 50, PERSON_NAME)
CategoryName = _text(2, 50, CATEGORY_NAME)
Phone = _text(pattern=PHONE)
Address = _text(max_length=200)
Url = Annotated[str, AfterValidator(_http_url)]
UUIDStr = Annotated[str, AfterValidator(_uuid_string)]
SearchText = _text(2, 100)
Limit = Annotated[int, Field(ge=1), AfterValidator(_clamp_limit)]
PageNumber = Annotated[int, Field(ge=1)]
Price = Annotated[Decimal, Field(ge=Decimal('0.01'), max_digits=10, decimal_places=2)]
Rating = Annotated[int, Field(ge=1, le=5)]


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def changes(self, nullable=()):
        """Fields the client actually sent; ``None`` is kept only for clearable fields."""
        return {
            name: value for name, value in self.model_dump(exclude_unset=True).items()
            if value is not None or name in nullable
        }


# ---------------------------
# Auth & profile
# ---------------------------


class RegisterBody(Schema):
    email: Email
    password: Password
    first_name: PersonName
    last_name: PersonName
    role: Optional[Literal['BUYER', 'SELLER']] = None
    phone: Optional[Phone] = None
    address: Optional[Address] = None


class LoginBody(Schema):
    email: Email
    password: str = Field(min_length=1)


class VerifyTokenBody(Schema):
    token: str = Field(min_length=1)


class ProfileBody(Schema):
    first_name: Optional[PersonName] = None
    last_name: Optional[PersonName] = None
    phone: Optional[Phone] = None
    address: Optional[Address] = None
    avatar: Optional[Url] = None


class UserProfileBody(ProfileBody):
    current_password: Optional[str] = None
    new_password: Optional[Password] = None


class ChangePasswordBody(Schema):
    current_password: str = Field(min_length=1)
    new_password: Password


# ---------------------------
# Catalog
# ---------------------------


class ProductCreateBody(Schema):
    title: _text(3, 100)
    description: _text(10, 1000)
    price: Price
    category_id: UUIDStr
    stock: int = Field(0, ge=0)
    images: List[Url] = Field(default_factory=list)


class ProductUpdateBody(Schema):
    title: Optional[_text(3, 100)] = None
    description: Optional[_text(10, 1000)] = None
    price: Optional[Price] = None
    category_id: Optional[UUIDStr] = None
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[Url]] = None


class CategoryCreateBody(Schema):
    name: CategoryName
    description: Optional[_text(max_length=500)] = None
    image: Optional[Url] = None


class CategoryUpdateBody(Schema):
    name: Optional[CategoryName] = None
    description: Optional[_text(max_length=500)] = None
    image: Optional[Url] = None
    is_active: Optional[bool] = None


class ReviewCreateBody(Schema):
    rating: Rating
    comment: Optional[_text(10, 500)] = None


class ReviewUpdateBody(Schema):
    rating: Optional[Rating] = None
    comment: Optional[_text(10, 500)] = None


# ---------------------------
# Orders & messages
# ---------------------------


class OrderCreateBody(Schema):
    product_id: UUIDStr
    quantity: int = Field(ge=1)


class OrderStatusBody(Schema):
    status: OrderStatus


class MessageCreateBody(Schema):
    receiver_id: UUIDStr
    subject: _text(3, 100)
    message: _text(10, 1000)


# ---------------------------
# Admin
# ---------------------------


class RoleBody(Schema):
    role: Role


class ApprovalBody(Schema):
    is_approved: bool


# ---------------------------
# Query strings
# ---------------------------


class PageQuery(Schema):
    page: PageNumber = 1
    limit: Limit = 10


class ProductListQuery(PageQuery):
    limit: Limit = 12
    sort_by: ProductSort = ProductSort.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    category: Optional[UUIDStr] = None
    category_id: Optional[UUIDStr] = None
    seller_id: Optional[UUIDStr] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    status: ApprovalStatus = ApprovalStatus.APPROVED
    search: Optional[SearchText] = None


class ProductSearchQuery(ProductListQuery):
    q: Optional[_text(1, 100)] = None


class CategoryProductsQuery(PageQuery):
    limit: Limit = 12
    sort_by: ProductSort = ProductSort.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC


class AdminProductQuery(PageQuery):
    limit: Limit = 20
    sort_by: ProductSort = ProductSort.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    category: Optional[UUIDStr] = None
    seller: Optional[UUIDStr] = None
    status: Optional[ApprovalStatus] = None
    search: Optional[SearchText] = None


class UserListQuery(PageQuery):
    limit: Limit = 20
    sort_by: UserSort = UserSort.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    search: Optional[SearchText] = None


class CategoryListQuery(PageQuery):
    limit: Limit = 20
    sort_by: CategorySort = CategorySort.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    search: Optional[SearchText] = None


class OrderListQuery(PageQuery):
    status: Optional[OrderStatus] = None


class MessageListQuery(PageQuery):
    box: MessageBox = MessageBox.INBOX
    unread: Optional[bool] = None


# ---------------------------
# Decorators
# ---------------------------


def _field_errors(exc: ValidationError):
    return [
        {'field': '.'.join(str(part) for part in error['loc']) or 'body', 'message': error['msg']}
        for error in exc.errors()
    ]


def _parse(model, payload):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed(_field_errors(exc))


def validate_body(model):
    """Parses the JSON body into ``model`` and passes it to the view as ``body``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            payload = request.get_json(silent=True)
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                raise ValidationFailed([{'field': 'body', 'message': 'Expected a JSON object'}])
            kwargs['body'] = _parse(model, payload)
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def validate_query(model):
    """Parses the query string into ``model`` and passes it to the view as ``query``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            kwargs['query'] = _parse(model, request.args.to_dict())
            return fn(*args, **kwargs)
        return wrapper
    return decorator

# marketplace/listing.py
# Allow-listed sort keys and list filters. Every key a client may send
# is declared here; the store maps each member to a column.
import enum
import math
from dataclasses import dataclass, field
from typing import List, Optional

MAX_PAGE_SIZE = 100


class SortOrder(str, enum.Enum):
    ASC = 'asc'
    DESC = 'desc'


class ProductSort(str, enum.Enum):
    CREATED_AT = 'createdAt'
    UPDATED_AT = 'updatedAt'
    TITLE = 'title'
    PRICE = 'price'
    RATING = 'rating'


class UserSort(str, enum.Enum):
    CREATED_AT = 'createdAt'
    UPDATED_AT = 'updatedAt'
    EMAIL = 'email'
    FIRST_NAME = 'firstName'
    LAST_NAME = 'lastName'


class CategorySort(str, enum.Enum):
    CREATED_AT = 'createdAt'
    UPDATED_AT = 'updatedAt'
    NAME = 'name'


class ApprovalStatus(str, enum.Enum):
    APPROVED = 'approved'
    PENDING = 'pending'


class MessageBox(str, enum.Enum):
    INBOX = 'inbox'
    SENT = 'sent'


@dataclass
class Sort:
    key: enum.Enum
    order: SortOrder = SortOrder.DESC


@dataclass
class ProductFilter:
    category_id: Optional[str] = None
    seller_id: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    approved: Optional[bool] = None
    active: Optional[bool] = True
    search: Optional[str] = None


@dataclass
class UserFilter:
    role: Optional[str] = None
    active: Optional[bool] = None
    search: Optional[str] = None


@dataclass
class Page:
    items: List = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self):
        return math.ceil(self.total / self.limit) if self.limit else 0

    def meta(self):
        return {'page': self.page, 'limit': self.limit, 'total': self.total, 'pages': self.pages}

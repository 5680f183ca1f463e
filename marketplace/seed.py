# marketplace/seed.py
# Demo data for `flask --app app seed`.
from decimal import Decimal

from .logger import get_logger
from .models import Category, ContactMessage, Order, OrderStatus, Product, Review, Role, User
from .security import hash_password

_logger = get_logger(__name__)

USERS = [
    ('admin', 'admin@marketplace.example.com', 'Admin1234', 'Admin', 'User', Role.ADMIN, 'Tunis'),
    ('seller1', 'seller1@marketplace.example.com', 'Seller1234', 'Ahmed', 'Ben Ali', Role.SELLER, 'Sfax'),
    ('seller2', 'seller2@marketplace.example.com', 'Seller1234', 'Fatma', 'Trabelsi', Role.SELLER, 'Sousse'),
    ('buyer1', 'buyer1@marketplace.example.com', 'Buyer1234', 'Mohamed', 'Dridi', Role.BUYER, 'Monastir'),
    ('buyer2', 'buyer2@marketplace.example.com', 'Buyer1234', 'Amina', 'Hammami', Role.BUYER, 'Nabeul'),
]

CATEGORIES = [
    ('electronics', 'Electronics', 'Phones, laptops and gadgets'),
    ('clothing', 'Clothing', 'Fashion and accessories'),
    ('home', 'Home & Garden', 'Furniture, decoration and garden tools'),
    ('sports', 'Sports & Leisure', 'Sports equipment and outdoor gear'),
    ('books', 'Books & Education', 'Books, courses and learning material'),
]

# key, title, description, price, category, seller, stock, approved
PRODUCTS = [
    ('phone', 'Samsung Galaxy S21', 'Flagship smartphone with a pro camera and a 6.2 inch AMOLED screen',
     '899.99', 'electronics', 'seller1', 15, True),
    ('laptop', 'Dell Inspiron 15 laptop', 'Fast laptop with an Intel i7 processor and 16GB of RAM',
     '1299.99', 'electronics', 'seller1', 8, True),
    ('shirt', 'Organic cotton shirt', 'Comfortable and durable shirt made of organic cotton',
     '45.99', 'clothing', 'seller2', 50, True),
    ('jeans', 'Premium slim fit jeans', 'Premium denim with a slim cut and careful finishing',
     '89.99', 'clothing', 'seller2', 25, True),
    ('lamp', 'LED desk lamp', 'Modern desk lamp with adjustable LED lighting and a clean design',
     '29.99', 'home', 'seller1', 30, True),
    ('garden', 'Complete gardening kit', 'Gardening kit with quality tools and a user guide',
     '79.99', 'home', 'seller2', 12, True),
    ('bike', 'Professional road bike', 'Light and fast road bike built for sport cycling',
     '899.99', 'sports', 'seller1', 5, True),
    ('yoga', 'Yoga mat', 'Non-slip yoga mat, thick and easy to carry around',
     '34.99', 'sports', 'seller2', 40, False),
    ('python', 'Learning Python', 'Hands-on introduction to programming with Python',
     '39.99', 'books', 'seller1', 20, False),
]

# product, buyer, rating, comment
REVIEWS = [
    ('phone', 'buyer1', 5, 'Excellent phone, the camera is outstanding.'),
    ('phone', 'buyer2', 4, 'Very good phone, battery life could be better.'),
    ('laptop', 'buyer1', 5, 'Fast and reliable, perfect for work.'),
    ('shirt', 'buyer2', 4, 'Nice fabric and the size fits well.'),
    ('lamp', 'buyer1', 3, 'Does the job but the stand is a bit wobbly.'),
]

# product, buyer, quantity, status
ORDERS = [
    ('phone', 'buyer1', 1, OrderStatus.DELIVERED),
    ('shirt', 'buyer2', 2, OrderStatus.SHIPPED),
    ('lamp', 'buyer1', 1, OrderStatus.CONFIRMED),
    ('jeans', 'buyer2', 1, OrderStatus.PENDING),
]

# sender, receiver, subject, message
MESSAGES = [
    ('buyer1', 'seller1', 'Question about the laptop', 'Does the laptop come with a charger and a warranty?'),
    ('seller1', 'buyer1', 'Re: Question about the laptop', 'Yes, it ships with the charger and a two year warranty.'),
    ('buyer2', 'seller2', 'Jeans sizes', 'Do you also have the slim fit jeans in size 32?'),
]


def seed(store, reset=True):
    """Loads the demo data set and returns the number of rows created per table."""
    if reset:
        store.drop_schema()
        _logger.info('Dropped existing tables')
    store.init_schema()
    session = store.session

    users = {}
    for key, email, password, first, last, role, city in USERS:
        users[key] = User(email=email, password=hash_password(password), first_name=first,
                          last_name=last, role=role, address=f'{city}, Tunisia')
    categories = {key: Category(name=name, description=description)
                  for key, name, description in CATEGORIES}
    session.add_all(list(users.values()) + list(categories.values()))
    session.flush()

    products = {}
    for key, title, description, price, category, seller, stock, approved in PRODUCTS:
        products[key] = Product(title=title, description=description, price=Decimal(price),
                                category_id=categories[category].id,
                                seller_id=users[seller].id, stock=stock, images=[],
                                is_approved=approved)
    session.add_all(products.values())
    session.flush()

    reviews = [Review(product_id=products[p].id, user_id=users[u].id, rating=rating,
                      comment=comment)
               for p, u, rating, comment in REVIEWS]
    orders = [Order(product_id=products[p].id, buyer_id=users[u].id, quantity=quantity,
                    total_price=products[p].price * quantity, status=status)
              for p, u, quantity, status in ORDERS]
    messages = [ContactMessage(sender_id=users[s].id, receiver_id=users[r].id, subject=subject,
                               message=message)
                for s, r, subject, message in MESSAGES]
    session.add_all(reviews + orders + messages)
    session.commit()

    counts = {
        'users': len(users),
        'categories': len(categories),
        'products': len(products),
        'reviews': len(reviews),
        'orders': len(orders),
        'messages': len(messages),
    }
    _logger.info(f'Seeded {counts}')
    return counts

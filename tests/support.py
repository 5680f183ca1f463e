import unittest
from decimal import Decimal
from itertools import count

from marketplace import create_app
from marketplace.models import Category, Product, Role, User, db
from marketplace.security import hash_password

PASSWORD = 'Passw0rd!'

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'BCRYPT_LOG_ROUNDS': 4,
    'RATELIMIT_ENABLED': False,
    'JWT_SECRET_KEY': 'test-secret',
    'APP_ENV': 'test',
}

_sequence = count(1)


class ApiTestCase(unittest.TestCase):
    """Fresh app over an in-memory database for every test."""

    def setUp(self):
        self.app = create_app(dict(TEST_CONFIG))
        self.client = self.app.test_client()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    # ---------- HTTP ----------

    def request(self, method, path, token=None, **kwargs):
        headers = kwargs.pop('headers', {})
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return self.client.open(path, method=method, headers=headers, **kwargs)

    def get(self, path, token=None, **kwargs):
        return self.request('GET', path, token, **kwargs)

    def post(self, path, json=None, token=None, **kwargs):
        return self.request('POST', path, token, json=json, **kwargs)

    def put(self, path, json=None, token=None, **kwargs):
        return self.request('PUT', path, token, json=json, **kwargs)

    def delete(self, path, token=None, **kwargs):
        return self.request('DELETE', path, token, **kwargs)

    # ---------- Fixtures ----------

    def create_user(self, role=Role.BUYER, email=None, password=PASSWORD, active=True):
        """Inserts a user directly and returns its id."""
        email = email or f'user{next(_sequence)}@example.com'
        with self.app.app_context():
            user = User(email=email, password=hash_password(password), first_name='Test',
                        last_name='User', role=Role(role), is_active=active)
            db.session.add(user)
            db.session.commit()
            return user.id

    def login(self, email, password=PASSWORD):
        response = self.post('/api/auth/login', {'email': email, 'password': password})
        self.assertEqual(response.status_code, 200, response.get_json())
        return response.get_json()['data']['token']

    def user_with_token(self, role=Role.BUYER):
        email = f'{Role(role).value.lower()}{next(_sequence)}@example.com'
        user_id = self.create_user(role, email)
        return user_id, self.login(email)

    def create_category(self, name=None):
        with self.app.app_context():
            category = Category(name=name or f'Category {next(_sequence)}')
            db.session.add(category)
            db.session.commit()
            return category.id

    def create_product(self, seller_id, category_id, approved=True, active=True,
                       price='10.00', title='Sample product'):
        with self.app.app_context():
            product = Product(title=title, description='A product used in tests',
                              price=Decimal(price), category_id=category_id,
                              seller_id=seller_id, stock=5, images=[],
                              is_approved=approved, is_active=active)
            db.session.add(product)
            db.session.commit()
            return product.id

    def data(self, response):
        return response.get_json()['data']

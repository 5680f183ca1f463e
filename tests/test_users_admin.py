from datetime import timedelta

from marketplace.models import Order, OrderStatus, Role, db, utcnow
from tests.support import PASSWORD, ApiTestCase


class UserTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin_id, self.admin = self.user_with_token(Role.ADMIN)
        self.seller_id, self.seller = self.user_with_token(Role.SELLER)
        self.buyer_id, self.buyer = self.user_with_token(Role.BUYER)

    def test_profile_counts_and_update(self):
        profile = self.data(self.get('/api/users/profile', self.seller))
        self.assertEqual(profile['counts']['products'], 0)
        updated = self.put('/api/users/profile', {'lastName': 'Dupont', 'address': 'Paris'},
                           self.seller)
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(self.data(updated)['lastName'], 'Dupont')

    def test_profile_password_change_requires_current_password(self):
        missing = self.put('/api/users/profile', {'newPassword': 'N3wPassword'}, self.buyer)
        self.assertEqual(missing.status_code, 400)
        wrong = self.put('/api/users/profile',
                         {'currentPassword': 'Wr0ngPass', 'newPassword': 'N3wPassword'},
                         self.buyer)
        self.assertEqual(wrong.status_code, 400)
        changed = self.put('/api/users/profile',
                           {'currentPassword': PASSWORD, 'newPassword': 'N3wPassword'},
                           self.buyer)
        self.assertEqual(changed.status_code, 200)

    def test_stats(self):
        category_id = self.create_category()
        self.create_product(self.seller_id, category_id)
        self.create_product(self.seller_id, category_id, approved=False)
        stats = self.data(self.get('/api/users/stats', self.seller))
        self.assertEqual(stats['products'], {'total': 2, 'approved': 1, 'pending': 1,
                                             'inactive': 0})
        self.assertEqual(stats['reviews'], {'total': 0, 'averageRating': 0})

    def test_public_profile(self):
        category_id = self.create_category()
        self.create_product(self.seller_id, category_id)
        self.create_product(self.seller_id, category_id, approved=False)
        user = self.data(self.get(f'/api/users/{self.seller_id}'))
        self.assertEqual(user['counts'], {'products': 1, 'reviews': 0})
        self.assertNotIn('password', user)
        self.assertEqual(self.get('/api/users/5d0c2b7e-5555-4c1e-8d5a-2f1f7e5a9b10').status_code,
                         404)

    def test_admin_user_listing(self):
        self.assertEqual(self.get('/api/users', self.buyer).status_code, 403)
        body = self.get('/api/users?role=SELLER', self.admin).get_json()
        self.assertEqual([u['id'] for u in body['data']], [self.seller_id])
        everyone = self.get('/api/admin/users?limit=2', self.admin).get_json()
        self.assertEqual(everyone['pagination'], {'page': 1, 'limit': 2, 'total': 3, 'pages': 2})
        searched = self.get('/api/admin/users?search=SELLER', self.admin).get_json()
        self.assertEqual([u['id'] for u in searched['data']], [self.seller_id])

    def test_delete_rules(self):
        self.assertEqual(self.delete(f'/api/users/{self.admin_id}', self.admin).status_code, 400)
        self.create_product(self.seller_id, self.create_category())
        self.assertEqual(self.delete(f'/api/users/{self.seller_id}', self.admin).status_code, 400)
        self.assertEqual(self.delete(f'/api/users/{self.buyer_id}', self.buyer).status_code, 403)
        self.assertEqual(self.delete(f'/api/users/{self.buyer_id}', self.admin).status_code, 200)
        self.assertEqual(self.delete(f'/api/users/{self.buyer_id}', self.admin).status_code, 404)


class AdminTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin_id, self.admin = self.user_with_token(Role.ADMIN)
        self.seller_id, self.seller = self.user_with_token(Role.SELLER)
        self.buyer_id, self.buyer = self.user_with_token(Role.BUYER)

    def test_every_admin_route_is_guarded(self):
        for path in ('/api/admin/dashboard', '/api/admin/users', '/api/admin/products',
                     '/api/admin/categories'):
            self.assertEqual(self.get(path).status_code, 401, path)
            self.assertEqual(self.get(path, self.seller).status_code, 403, path)
            self.assertEqual(self.get(path, self.admin).status_code, 200, path)

    def test_toggle_status_twice_restores_value(self):
        path = f'/api/admin/users/{self.buyer_id}/status'
        first = self.put(path, token=self.admin)
        self.assertFalse(self.data(first)['isActive'])
        self.assertEqual(self.get('/api/auth/profile', self.buyer).status_code, 401)
        second = self.put(path, token=self.admin)
        self.assertTrue(self.data(second)['isActive'])
        self.assertEqual(self.get('/api/auth/profile', self.buyer).status_code, 200)

    def test_change_role(self):
        response = self.put(f'/api/admin/users/{self.buyer_id}/role', {'role': 'SELLER'},
                            self.admin)
        self.assertEqual(self.data(response)['role'], 'SELLER')
        bad = self.put(f'/api/admin/users/{self.buyer_id}/role', {'role': 'OWNER'}, self.admin)
        self.assertEqual(bad.status_code, 400)

    def test_product_moderation_listing(self):
        category_id = self.create_category()
        pending = self.create_product(self.seller_id, category_id, approved=False)
        self.create_product(self.seller_id, category_id)
        hidden = self.create_product(self.seller_id, category_id, active=False)
        everything = self.data(self.get('/api/admin/products', self.admin))
        self.assertEqual(len(everything), 3)
        self.assertIn(hidden, [p['id'] for p in everything])
        waiting = self.data(self.get('/api/admin/products?status=pending', self.admin))
        self.assertEqual([p['id'] for p in waiting], [pending])
        rejected = self.put(f'/api/admin/products/{pending}/approval', {'isApproved': False},
                            self.admin)
        self.assertEqual(rejected.get_json()['message'], 'Product rejected successfully')

    def test_dashboard(self):
        category_id = self.create_category()
        popular = self.create_product(self.seller_id, category_id, price='20.00')
        self.create_product(self.seller_id, category_id, approved=False)
        for rating in (5, 4):
            _, buyer = self.user_with_token(Role.BUYER)
            self.post(f'/api/reviews/product/{popular}', {'rating': rating}, buyer)
        self.post('/api/orders', {'productId': popular, 'quantity': 2}, self.buyer)
        with self.app.app_context():
            db.session.add(Order(product_id=popular, buyer_id=self.buyer_id, quantity=1,
                                 total_price=20, status=OrderStatus.DELIVERED,
                                 created_at=utcnow() - timedelta(days=30)))
            db.session.commit()

        stats = self.data(self.get('/api/admin/dashboard', self.admin))
        self.assertEqual(stats['totalUsers'], 5)
        self.assertEqual(stats['totalProducts'], 2)
        self.assertEqual(stats['totalOrders'], 2)
        self.assertEqual(stats['totalCategories'], 1)
        self.assertEqual(stats['pendingProducts'], 1)
        self.assertEqual(stats['totalRevenue'], 40.0)
        self.assertEqual(len(stats['recentOrders']), 1)
        self.assertEqual(stats['topProducts'][0]['id'], popular)
        self.assertEqual(stats['topProducts'][0]['averageRating'], 4.5)
        roles = {row['role']: row['count'] for row in stats['userStats']}
        self.assertEqual(roles, {'ADMIN': 1, 'SELLER': 1, 'BUYER': 3})

from dataclasses import FrozenInstanceError

from marketplace.auth import Guard, authorize
from marketplace.errors import Unauthenticated
from marketplace.models import Role, User, db
from marketplace.store import Store
from tests.support import PASSWORD, ApiTestCase

REGISTRATION = {
    'email': 'b1@example.com',
    'password': 'Passw0rd!',
    'firstName': 'Bea',
    'lastName': 'Buyer',
}


class AuthTestCase(ApiTestCase):
    # ---------- Registration & login ----------

    def test_register_login_and_read_profile(self):
        response = self.post('/api/auth/register', REGISTRATION)
        self.assertEqual(response.status_code, 201)
        registered = self.data(response)
        self.assertEqual(registered['user']['role'], 'BUYER')
        self.assertNotIn('password', registered['user'])
        self.assertTrue(registered['token'])

        token = self.login('b1@example.com', 'Passw0rd!')
        profile = self.get('/api/users/profile', token)
        self.assertEqual(profile.status_code, 200)
        self.assertEqual(self.data(profile)['role'], 'BUYER')
        self.assertEqual(self.data(profile)['email'], 'b1@example.com')

    def test_stored_password_is_hashed(self):
        self.post('/api/auth/register', REGISTRATION)
        with self.app.app_context():
            user = db.session.scalar(db.select(User).filter_by(email='b1@example.com'))
            self.assertNotEqual(user.password, 'Passw0rd!')
            self.assertTrue(user.password.startswith('$2'))

    def test_register_as_seller(self):
        response = self.post('/api/auth/register', dict(REGISTRATION, role='SELLER'))
        self.assertEqual(self.data(response)['user']['role'], 'SELLER')

    def test_duplicate_email_conflicts(self):
        self.post('/api/auth/register', REGISTRATION)
        response = self.post('/api/auth/register', dict(REGISTRATION, email='B1@example.com'))
        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.get_json()['success'])

    def test_login_failures_are_unauthenticated(self):
        self.create_user(email='known@example.com')
        self.create_user(email='sleepy@example.com', active=False)
        for email, password in (('known@example.com', 'Wr0ngPass'),
                                ('nobody@example.com', PASSWORD),
                                ('sleepy@example.com', PASSWORD)):
            response = self.post('/api/auth/login', {'email': email, 'password': password})
            self.assertEqual(response.status_code, 401, email)

    # ---------- Token handling ----------

    def test_missing_and_malformed_tokens(self):
        self.assertEqual(self.get('/api/auth/profile').status_code, 401)
        self.assertEqual(self.get('/api/auth/profile', 'not-a-token').status_code, 401)
        response = self.get('/api/auth/profile', headers={'Authorization': 'Token abc'})
        self.assertEqual(response.status_code, 401)

    def test_deactivated_user_token_stops_working(self):
        user_id, token = self.user_with_token()
        self.assertEqual(self.get('/api/auth/profile', token).status_code, 200)
        with self.app.app_context():
            db.session.get(User, user_id).is_active = False
            db.session.commit()
        self.assertEqual(self.get('/api/auth/profile', token).status_code, 401)

    def test_verify_and_refresh_token(self):
        user_id, token = self.user_with_token(Role.SELLER)
        verified = self.post('/api/auth/verify-token', {'token': token})
        self.assertEqual(verified.status_code, 200)
        self.assertEqual(self.data(verified)['id'], user_id)
        self.assertEqual(self.post('/api/auth/verify-token', {'token': 'bad'}).status_code, 401)

        refreshed = self.post('/api/auth/refresh-token', token=token)
        self.assertEqual(refreshed.status_code, 200)
        self.assertEqual(self.get('/api/auth/profile', self.data(refreshed)['token']).status_code,
                         200)

    def test_logout(self):
        _, token = self.user_with_token()
        response = self.post('/api/auth/logout', token=token)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['success'])

    # ---------- Profile & password ----------

    def test_update_profile(self):
        _, token = self.user_with_token()
        response = self.put('/api/auth/profile', {'firstName': 'Renée', 'phone': '+216 12345678'},
                            token)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.data(response)['firstName'], 'Renée')
        self.assertEqual(self.data(response)['phone'], '+216 12345678')
        self.assertEqual(self.put('/api/auth/profile', {'avatar': 'nope'}, token).status_code, 400)

    def test_change_password(self):
        self.create_user(email='pw@example.com')
        token = self.login('pw@example.com')
        wrong = self.put('/api/auth/change-password',
                         {'currentPassword': 'Wr0ngPass', 'newPassword': 'N3wPassword'}, token)
        self.assertEqual(wrong.status_code, 400)
        weak = self.put('/api/auth/change-password',
                        {'currentPassword': PASSWORD, 'newPassword': 'weak'}, token)
        self.assertEqual(weak.status_code, 400)
        changed = self.put('/api/auth/change-password',
                           {'currentPassword': PASSWORD, 'newPassword': 'N3wPassword'}, token)
        self.assertEqual(changed.status_code, 200)
        self.login('pw@example.com', 'N3wPassword')
        response = self.post('/api/auth/login', {'email': 'pw@example.com', 'password': PASSWORD})
        self.assertEqual(response.status_code, 401)


class EdgeTestCase(ApiTestCase):
    def test_health(self):
        response = self.get('/health')
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body['success'])
        self.assertTrue(body['database'])

    def test_unknown_route(self):
        response = self.get('/api/nowhere')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json(),
                         {'success': False, 'message': 'Route not found - /api/nowhere'})

    def test_method_not_allowed_uses_envelope(self):
        response = self.request('PATCH', '/api/auth/login')
        self.assertEqual(response.status_code, 405)
        self.assertFalse(response.get_json()['success'])


class GuardTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.guard = Guard(Store(db))

    def call(self, view, token=None):
        headers = {'Authorization': f'Bearer {token}'} if token else {}
        with self.app.test_request_context('/', headers=headers):
            return view()

    def test_optional_passes_context_or_none(self):
        user_id, token = self.user_with_token(Role.SELLER)

        @self.guard.optional
        def view(auth):
            return auth

        auth = self.call(view, token)
        self.assertEqual(auth.id, user_id)
        self.assertEqual(auth.role, Role.SELLER)
        self.assertEqual(auth.to_dict()['role'], 'SELLER')
        self.assertIsNone(self.call(view))
        self.assertIsNone(self.call(view, 'broken'))

    def test_context_is_immutable(self):
        _, token = self.user_with_token()

        @self.guard.authenticate
        def view(auth):
            return auth

        auth = self.call(view, token)
        with self.assertRaises(FrozenInstanceError):
            auth.role = Role.ADMIN

    def test_authorize_without_authentication(self):
        @authorize(Role.ADMIN)
        def view(auth=None):
            return auth

        with self.assertRaises(Unauthenticated):
            self.call(view)

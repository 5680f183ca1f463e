# marketplace/routes/auth.py
from flask import Blueprint

from ..errors import ApiError, Conflict, Unauthenticated
from ..logger import get_logger
from ..models import Role, User
from ..responses import created, ok
from ..security import claims_for, hash_password, issue_token, verify_password
from ..validation import (ChangePasswordBody, LoginBody, ProfileBody, RegisterBody,
                          VerifyTokenBody, validate_body)

_logger = get_logger(__name__)

INVALID_CREDENTIALS = 'Invalid email or password'


def session_payload(user):
    return {'user': user.to_dict(), 'token': issue_token(claims_for(user))}


def create_blueprint(store, guard):
    bp = Blueprint('auth', __name__)

    @bp.post('/register')
    @validate_body(RegisterBody)
    def register(body):
        if store.get_user_by_email(body.email):
            raise Conflict('User with this email already exists')
        user = User(
            email=body.email,
            password=hash_password(body.password),
            first_name=body.first_name,
            last_name=body.last_name,
            role=Role(body.role) if body.role else Role.BUYER,
            phone=body.phone,
            address=body.address,
        )
        store.add(user)
        _logger.info(f'Registered {user.role.value} {user.email}')
        return created(session_payload(user), 'Registration successful')

    @bp.post('/login')
    @validate_body(LoginBody)
    def login(body):
        user = store.get_user_by_email(body.email)
        if user is None or not verify_password(body.password, user.password):
            _logger.warning(f'Failed login for {body.email}')
            raise Unauthenticated(INVALID_CREDENTIALS)
        if not user.is_active:
            _logger.warning(f'Login refused for deactivated account {body.email}')
            raise Unauthenticated('Account is deactivated')
        return ok(session_payload(user), 'Login successful')

    @bp.post('/verify-token')
    @validate_body(VerifyTokenBody)
    def verify(body):
        auth = guard.context_for(body.token)
        return ok(store.get_user(auth.id).to_dict(), 'Token is valid')

    @bp.get('/profile')
    @guard.authenticate
    def profile(auth):
        return ok(store.get_user(auth.id).to_dict(), 'Profile retrieved successfully')

    @bp.put('/profile')
    @guard.authenticate
    @validate_body(ProfileBody)
    def update_profile(auth, body):
        user = store.update(store.get_user(auth.id), **body.changes())
        return ok(user.to_dict(), 'Profile updated successfully')

    @bp.put('/change-password')
    @guard.authenticate
    @validate_body(ChangePasswordBody)
    def change_password(auth, body):
        user = store.get_user(auth.id)
        if not verify_password(body.current_password, user.password):
            raise ApiError('Current password is incorrect', 400)
        store.update(user, password=hash_password(body.new_password))
        _logger.info(f'Password changed for {user.email}')
        return ok(message='Password changed successfully')

    @bp.post('/refresh-token')
    @guard.authenticate
    def refresh_token(auth):
        user = store.get_user(auth.id)
        return ok({'token': issue_token(claims_for(user))}, 'Token refreshed successfully')

    @bp.post('/logout')
    @guard.authenticate
    def logout(auth):
        # tokens are stateless; the client discards its copy
        return ok(message='Logout successful')

    return bp

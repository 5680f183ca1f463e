# marketplace/routes/users.py
from flask import Blueprint

from ..auth import authorize
from ..errors import ApiError, NotFound, ValidationFailed
from ..listing import Sort, UserFilter
from ..logger import get_logger
from ..models import Role
from ..responses import ok, paginated
from ..security import hash_password, verify_password
from ..validation import UserListQuery, UserProfileBody, validate_body, validate_query

_logger = get_logger(__name__)


def find_user(store, user_id):
    user = store.get_user(user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def list_users(store, query):
    page = store.list_users(
        UserFilter(role=query.role, active=query.is_active, search=query.search),
        Sort(query.sort_by, query.sort_order),
        query.page, query.limit,
    )
    return paginated(page, [user.to_dict() for user in page.items], 'Users retrieved successfully')


def create_blueprint(store, guard):
    bp = Blueprint('users', __name__)

    @bp.get('/profile')
    @guard.authenticate
    def profile(auth):
        user = find_user(store, auth.id)
        data = user.to_dict()
        data['counts'] = store.user_activity(user.id)
        return ok(data, 'Profile retrieved successfully')

    @bp.put('/profile')
    @guard.authenticate
    @validate_body(UserProfileBody)
    def update_profile(auth, body):
        user = find_user(store, auth.id)
        changes = body.changes()
        current = changes.pop('current_password', None)
        new = changes.pop('new_password', None)
        if new is not None:
            if not current:
                raise ValidationFailed([{'field': 'currentPassword',
                                         'message': 'Current password is required'}])
            if not verify_password(current, user.password):
                raise ApiError('Current password is incorrect', 400)
            changes['password'] = hash_password(new)
        store.update(user, **changes)
        return ok(user.to_dict(), 'Profile updated successfully')

    @bp.get('/stats')
    @guard.authenticate
    def stats(auth):
        return ok(store.user_stats(auth.id))

    @bp.get('/<id>')
    def get_user(id):
        user = find_user(store, id)
        data = user.to_dict()
        data['counts'] = store.user_public_counts(user.id)
        return ok(data)

    @bp.get('/')
    @guard.authenticate
    @authorize(Role.ADMIN)
    @validate_query(UserListQuery)
    def index(auth, query):
        return list_users(store, query)

    @bp.delete('/<id>')
    @guard.authenticate
    @authorize(Role.ADMIN)
    def delete_user(auth, id):
        if id == auth.id:
            raise ApiError('Cannot delete your own account', 400)
        user = find_user(store, id)
        if any(store.user_activity(user.id).values()):
            raise ApiError('Cannot delete user with existing activity. '
                           'Consider deactivating instead.', 400)
        email = user.email
        store.delete(user)
        _logger.info(f'User {email} deleted by {auth.email}')
        return ok(message='User deleted successfully')

    return bp

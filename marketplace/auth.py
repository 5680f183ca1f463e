# marketplace/auth.py
from dataclasses import dataclass
from functools import wraps

from flask import g, request

from .errors import ApiError, Forbidden, NotFound, Unauthenticated
from .models import Role
from .security import verify_token


@dataclass(frozen=True)
class AuthContext:
    id: str
    email: str
    role: Role
    first_name: str
    last_name: str

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, email=user.email, role=user.role,
                   first_name=user.first_name, last_name=user.last_name)

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role.value,
            'firstName': self.first_name,
            'lastName': self.last_name,
        }


def bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme != 'Bearer' or not token.strip():
        return None
    return token.strip()


def authorize(*roles):
    """Rejects the request with 403 unless ``auth.role`` is one of ``roles``.

    Must sit below ``guard.authenticate``.
    """
    allowed = {Role(role) for role in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = kwargs.get('auth')
            if auth is None:
                raise Unauthenticated()
            if auth.role not in allowed:
                raise Forbidden()
            return fn(*args, **kwargs)
        return wrapper
    return decorator


class Guard:
    def __init__(self, store):
        self.store = store

    def context_for(self, token) -> AuthContext:
        """Verifies ``token`` and re-reads the user so deactivation takes effect at once."""
        claims = verify_token(token)
        user = self.store.get_user(claims['id'])
        if user is None or not user.is_active:
            raise Unauthenticated('User not found or inactive')
        return AuthContext.from_user(user)

    def resolve(self) -> AuthContext:
        token = bearer_token()
        if token is None:
            raise Unauthenticated('Access token required')
        g.auth = self.context_for(token)
        return g.auth

    def authenticate(self, fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            kwargs['auth'] = self.resolve()
            return fn(*args, **kwargs)
        return wrapper

    def optional(self, fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                kwargs['auth'] = self.resolve()
            except ApiError:
                kwargs['auth'] = None
            return fn(*args, **kwargs)
        return wrapper

    def owns(self, kind, param='id'):
        """Allows the owner of the ``kind`` resource named by URL arg ``param``, or an admin."""
        label = kind.capitalize()

        def decorator(fn):
            @wraps(fn)
            def wrapper(*args, **kwargs):
                auth = kwargs['auth']
                owner_id = self.store.owner_of(kind, kwargs[param])
                if owner_id is None:
                    raise NotFound(f'{label} not found')
                if owner_id != auth.id and not auth.is_admin:
                    raise Forbidden(f'Not authorized to modify this {kind}')
                return fn(*args, **kwargs)
            return wrapper
        return decorator

    def require(self, *roles):
        """``before_request`` hook guarding a whole blueprint."""
        allowed = {Role(role) for role in roles}

        def check():
            if request.method == 'OPTIONS':
                return
            auth = self.resolve()
            if auth.role not in allowed:
                raise Forbidden()
        return check

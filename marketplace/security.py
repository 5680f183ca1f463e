# marketplace/security.py
import re
from datetime import timedelta

from flask_bcrypt import Bcrypt
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import ExpiredSignatureError, PyJWTError

from .errors import InvalidToken, TokenExpired

PASSWORD_ROUNDS = 12
PASSWORD_MIN_LENGTH = 8
CLAIM_KEYS = ('email', 'role', 'firstName', 'lastName')

bcrypt = Bcrypt()


def hash_password(plaintext: str) -> str:
    return bcrypt.generate_password_hash(plaintext).decode('utf-8')


def verify_password(plaintext: str, hashed: str) -> bool:
    try:
        return bcrypt.check_password_hash(hashed, plaintext)
    except ValueError:
        # not a bcrypt hash
        return False


def password_problems(password: str) -> list:
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f'at least {PASSWORD_MIN_LENGTH} characters')
    if not re.search(r'[A-Z]', password):
        problems.append('an uppercase letter')
    if not re.search(r'[a-z]', password):
        problems.append('a lowercase letter')
    if not re.search(r'\d', password):
        problems.append('a digit')
    return problems


def is_strong_password(password: str) -> bool:
    return not password_problems(password)


def claims_for(user) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'role': user.role.value,
        'firstName': user.first_name,
        'lastName': user.last_name,
    }


def issue_token(claims: dict, ttl: timedelta = None) -> str:
    """Signs an access token for ``claims``; ``ttl`` defaults to JWT_ACCESS_TOKEN_EXPIRES."""
    extra = {key: claims[key] for key in CLAIM_KEYS}
    return create_access_token(
        identity=str(claims['id']),
        additional_claims=extra,
        expires_delta=ttl,
    )


def verify_token(token: str) -> dict:
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise TokenExpired()
    except (PyJWTError, JWTExtendedException):
        raise InvalidToken()
    if not all(key in payload for key in CLAIM_KEYS):
        raise InvalidToken()
    claims = {'id': payload['sub']}
    claims.update({key: payload[key] for key in CLAIM_KEYS})
    return claims


_DURATION = re.compile(r'^\s*(\d+)\s*([smhdw]?)\s*$')
_UNITS = {'': 'seconds', 's': 'seconds', 'm': 'minutes', 'h': 'hours', 'd': 'days', 'w': 'weeks'}


def parse_duration(value: str) -> timedelta:
    """Parses '7d', '12h', '30m', '45s' or a plain number of seconds."""
    match = _DURATION.match(str(value))
    if not match:
        raise ValueError(f'Invalid duration: {value!r}')
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})

# marketplace/errors.py
from flask import jsonify, request, g
from sqlalchemy.exc import IntegrityError, NoResultFound
from werkzeug.exceptions import HTTPException

from .logger import get_logger

_logger = get_logger(__name__)


class ApiError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'success': False, 'message': self.message}


class ValidationFailed(ApiError):
    status_code = 400
    default_message = 'Invalid input'

    def __init__(self, errors=None, message=None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self):
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class Unauthenticated(ApiError):
    status_code = 401
    default_message = 'Authentication required'


class InvalidToken(Unauthenticated):
    default_message = 'Invalid token'


class TokenExpired(Unauthenticated):
    default_message = 'Token expired'


class Forbidden(ApiError):
    status_code = 403
    default_message = 'Insufficient permissions'


class NotFound(ApiError):
    status_code = 404
    default_message = 'Resource not found'


class Conflict(ApiError):
    status_code = 409
    default_message = 'A record with this value already exists'


# SQLSTATE codes (PostgreSQL) and message fragments (SQLite)
UNIQUE_VIOLATION = ('23505', 'UNIQUE constraint failed')
FOREIGN_KEY_VIOLATION = ('23503', 'FOREIGN KEY constraint failed')

TOO_MANY_REQUESTS = 'Too many requests from this IP, please try again later.'


def classify_integrity_error(exc: IntegrityError) -> ApiError:
    orig = exc.orig
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    text = str(orig)
    if code == UNIQUE_VIOLATION[0] or UNIQUE_VIOLATION[1] in text:
        return Conflict()
    if code == FOREIGN_KEY_VIOLATION[0] or FOREIGN_KEY_VIOLATION[1] in text:
        return ApiError('Foreign key constraint violation', 400)
    return ApiError('Database constraint violation', 400)


def _respond(error: ApiError):
    return jsonify(error.to_dict()), error.status_code


def register_error_handlers(app, db):
    production = app.config.get('APP_ENV') == 'production'

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            _logger.error(f'{request.method} {request.path}: {error.message}')
        return _respond(error)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        mapped = classify_integrity_error(error)
        _logger.warning(f'{request.method} {request.path}: {error.orig}')
        return _respond(mapped)

    @app.errorhandler(NoResultFound)
    def handle_no_result(error):
        return _respond(NotFound('Record not found'))

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if error.code == 404:
            message = f'Route not found - {request.path}'
        elif error.code == 429:
            message = TOO_MANY_REQUESTS
        else:
            message = error.description
        return jsonify({'success': False, 'message': message}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        db.session.rollback()
        auth = g.get('auth')
        _logger.exception(
            f'Unhandled error on {request.method} {request.path} '
            f'(user={auth.id if auth else None})'
        )
        body = {'success': False, 'message': 'Internal server error'}
        if not production:
            body['error'] = str(error)
        return jsonify(body), 500

# marketplace/app.py
import os
import time
from datetime import datetime, timezone

import click
from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .auth import Guard
from .errors import register_error_handlers
from .logger import get_logger
from .models import db
from .routes import register_blueprints
from .security import PASSWORD_ROUNDS, bcrypt, parse_duration
from .seed import seed
from .store import Store

load_dotenv()

_logger = get_logger(__name__)


def load_config():
    secret_key = os.getenv('SECRET_KEY', 'devsecret')
    return {
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', 'sqlite:///marketplace.db'),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': secret_key,
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET'),
        'JWT_ACCESS_TOKEN_EXPIRES': parse_duration(os.getenv('JWT_EXPIRES_IN', '7d')),
        'CORS_ORIGIN': os.getenv('CORS_ORIGIN', 'http://localhost:3000'),
        'APP_ENV': os.getenv('APP_ENV', 'development'),
        'RATELIMIT_DEFAULT': os.getenv('RATE_LIMIT', '100 per 15 minutes'),
    }


def create_app(config=None, store=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    if not app.config.get('JWT_SECRET_KEY'):
        if app.config['APP_ENV'] == 'production':
            raise RuntimeError('JWT_SECRET must be set in production')
        app.config['JWT_SECRET_KEY'] = app.config['SECRET_KEY']
    app.config.setdefault('BCRYPT_LOG_ROUNDS', PASSWORD_ROUNDS)
    app.url_map.strict_slashes = False

    db.init_app(app)
    bcrypt.init_app(app)
    JWTManager(app)
    CORS(app, origins=app.config['CORS_ORIGIN'], supports_credentials=True)
    limiter = Limiter(get_remote_address, app=app,
                      default_limits=[app.config['RATELIMIT_DEFAULT']],
                      storage_uri='memory://')

    store = store or Store(db)
    guard = Guard(store)
    register_error_handlers(app, db)
    register_blueprints(app, store, guard)

    @app.before_request
    def start_timer():
        g.started = time.perf_counter()

    @app.after_request
    def log_request(response):
        elapsed = (time.perf_counter() - g.get('started', time.perf_counter())) * 1000
        _logger.info(f'{request.method} {request.path} {response.status_code} {elapsed:.1f}ms')
        return response

    @app.get('/health')
    @limiter.exempt
    def health():
        return jsonify({
            'success': True,
            'message': 'Server is running',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'environment': app.config['APP_ENV'],
            'database': store.ping(),
        })

    @app.cli.command('seed')
    def seed_command():
        """Resets the database and loads demo data."""
        counts = seed(store)
        click.echo(', '.join(f'{count} {name}' for name, count in counts.items()))

    # Create tables at startup
    with app.app_context():
        store.init_schema()

    return app

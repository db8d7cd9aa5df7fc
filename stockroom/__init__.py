from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os
from stockroom.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["500 per day", "100 per hour"],
    storage_uri="memory://"  # Use Redis when running more than one worker
)


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def create_app(config_overrides=None):
    """
    Application factory.

    Configuration comes from the environment (see generate_env.py); `config_overrides`
    is applied last and is how the test suite swaps in its own database.
    """
    from pathlib import Path

    base_dir = Path(__file__).parent
    app = Flask(__name__,
                template_folder=str(base_dir / 'presentation' / 'templates'),
                static_folder=str(base_dir / 'presentation' / 'static'))

    logger = get_logger("stockroom")
    logger.info("Initializing Flask application")

    config_overrides = dict(config_overrides or {})

    # SECURITY: Require SECRET_KEY - no fallback
    app.config['SECRET_KEY'] = config_overrides.get('SECRET_KEY') or os.environ.get('SECRET_KEY')
    if not app.config['SECRET_KEY']:
        logger.critical("SECRET_KEY not set in environment! Application cannot start.")
        raise RuntimeError("SECRET_KEY environment variable is required")

    # Prefer an explicit DATABASE_URL; otherwise keep a SQLite file in instance/
    db_env = os.environ.get('DATABASE_URL')
    if 'SQLALCHEMY_DATABASE_URI' in config_overrides:
        pass
    elif db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        instance_dir = base_dir.parent / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'stockroom.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Fulfillment: one transaction per completion unless the store cannot provide it
    app.config['FULFILLMENT_ATOMIC'] = _env_flag('FULFILLMENT_ATOMIC', 'True')
    app.config['STOCK_CAS_MAX_RETRIES'] = int(os.environ.get('STOCK_CAS_MAX_RETRIES', '5'))

    # Session cookie security - only set to False for development over HTTP
    app.config['SESSION_COOKIE_SECURE'] = _env_flag('SESSION_COOKIE_SECURE', 'True')
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['PERMANENT_SESSION_LIFETIME'] = int(os.environ.get('PERMANENT_SESSION_LIFETIME', '3600'))
    app.config['REMEMBER_COOKIE_SECURE'] = _env_flag('REMEMBER_COOKIE_SECURE', 'True')
    app.config['REMEMBER_COOKIE_HTTPONLY'] = True

    app.config.update(config_overrides)

    if not app.config['SESSION_COOKIE_SECURE']:
        logger.warning("Secure session cookies DISABLED - acceptable for development only")
    logger.debug(f"Fulfillment mode: {'atomic' if app.config['FULFILLMENT_ATOMIC'] else 'step-commit'}")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'info'

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from stockroom.data.core.user_info.user import User
    from stockroom.data.inventory.product import Product
    from stockroom.data.inventory.stock_transaction import StockTransaction
    from stockroom.data.ordering.order import Order
    from stockroom.data.ordering.order_item import OrderItem

    logger.debug("Models imported and registered")

    # Register blueprints
    from stockroom.auth import auth
    from stockroom.presentation.routes import init_app as init_routes

    app.register_blueprint(auth)
    init_routes(app)

    # Add security headers to all responses
    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:;"
        )
        return response

    logger.info("Flask application initialization complete")

    return app

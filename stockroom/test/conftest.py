"""
Pytest configuration and fixtures

Every test gets a fresh application bound to its own SQLite file, with CSRF and
rate limiting switched off so forms can be posted directly.
"""
import pytest

from stockroom import create_app
from stockroom import db as _db
from stockroom.business.inventory.products.product_factory import ProductFactory
from stockroom.business.ordering.order_factory import OrderFactory
from stockroom.data.core.user_info.user import User

TEST_PASSWORD = 'correct-horse-battery'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create Flask application for testing"""
    app = create_app({
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stockroom_test.db'}",
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'SESSION_COOKIE_SECURE': False,
        'REMEMBER_COOKIE_SECURE': False,
        'FULFILLMENT_ATOMIC': True,
        'STOCK_CAS_MAX_RETRIES': 5,
    })

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


def _make_user(username):
    user = User(username=username, email=f'{username}@example.com')
    user.set_password(TEST_PASSWORD)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture(scope='function')
def owner(app):
    """The acting user for most tests"""
    return _make_user('alice')


@pytest.fixture(scope='function')
def other_user(app):
    return _make_user('bob')


@pytest.fixture(scope='function')
def make_product(owner):
    """Factory fixture: make_product(name, current_stock=..., owner_id=...)"""
    def _make(name='Flour', current_stock=0, unit='kg', min_stock_alert=0, owner_id=None):
        return ProductFactory().create_product(
            owner_id or owner.id,
            name,
            unit=unit,
            current_stock=current_stock,
            min_stock_alert=min_stock_alert,
        )
    return _make


@pytest.fixture(scope='function')
def make_order(owner):
    """Factory fixture: make_order([(product, quantity), ...], owner_id=...)"""
    def _make(lines, supplier_name='Mill & Co', owner_id=None, unit_price=None):
        items = [
            {'product_id': product.id, 'quantity': quantity, 'unit_price': unit_price}
            for product, quantity in lines
        ]
        return OrderFactory.create_order(owner_id or owner.id, supplier_name, items)
    return _make


@pytest.fixture(scope='function')
def client(app):
    """Create Flask test client"""
    return app.test_client()


@pytest.fixture(scope='function')
def authenticated_client(client, owner):
    """Test client logged in as the owner fixture"""
    login_user(client, owner.username)
    return client


def login_user(client, username='alice', password=TEST_PASSWORD):
    """Helper function to login a user"""
    return client.post('/login', data={
        'username': username,
        'password': password
    }, follow_redirects=True)

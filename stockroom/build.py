#!/usr/bin/env python3
"""
Database bootstrap for Stockroom: tables, the admin account, optional demo data
"""

import os

from stockroom import create_app, db
from stockroom.logger import get_logger

logger = get_logger("stockroom.build")

DEMO_PRODUCTS = [
    {'name': 'Arabica beans', 'unit': 'kg', 'current_stock': '12.5', 'min_stock_alert': '5'},
    {'name': 'Cane sugar', 'unit': 'kg', 'current_stock': '3', 'min_stock_alert': '4'},
    {'name': 'Cocoa powder', 'unit': 'g', 'current_stock': '750', 'min_stock_alert': '250'},
]


def ensure_admin_user():
    """
    Create the admin account from ADMIN_USERNAME / ADMIN_USER_PASSWORD / ADMIN_EMAIL
    unless a user with that name exists.

    Returns:
        User: The existing or new admin user

    Raises:
        RuntimeError: No ADMIN_USER_PASSWORD when the admin has to be created
    """
    from stockroom.data.core.user_info.user import User

    username = os.environ.get('ADMIN_USERNAME', 'admin')
    user = User.query.filter_by(username=username).first()
    if user is not None:
        logger.debug(f"Admin user '{username}' already present")
        return user

    password = os.environ.get('ADMIN_USER_PASSWORD')
    if not password:
        raise RuntimeError("ADMIN_USER_PASSWORD is required to create the admin user (run generate_env.py)")

    user = User(
        username=username,
        email=os.environ.get('ADMIN_EMAIL', f'{username}@localhost'),
        is_admin=True,
    )
    user.set_password(password)
    try:
        db.session.add(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Created admin user '{username}'")
    return user


def insert_demo_data(owner):
    """A few products and one pending order for a fresh install; skipped once the owner has products"""
    from stockroom.business.inventory.products.product_factory import ProductFactory
    from stockroom.business.ordering.order_factory import OrderFactory
    from stockroom.data.inventory.product import Product

    if Product.owned_by(owner.id).first() is not None:
        logger.debug("Products already exist, skipping demo data")
        return

    factory = ProductFactory()
    products = [factory.create_product(owner.id, **fields) for fields in DEMO_PRODUCTS]
    OrderFactory.create_order(
        owner.id,
        'Demo Roasters',
        [
            {'product_id': products[0].id, 'quantity': '10', 'unit_price': '18.40'},
            {'product_id': products[1].id, 'quantity': '5', 'unit_price': '2.10'},
        ],
        notes='Demo order',
    )
    logger.info(f"Inserted demo data: {len(products)} products, 1 order")


def build_database(app=None, demo_data=False):
    """
    Create all tables and make sure the admin account exists.

    Args:
        app: Application to build for; a new one from the environment when None
        demo_data: Also insert demo products and an order
    """
    app = app or create_app()
    with app.app_context():
        logger.info("Creating database tables")
        db.create_all()
        admin = ensure_admin_user()
        if demo_data:
            insert_demo_data(admin)
        logger.info("Database build complete")

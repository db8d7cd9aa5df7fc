"""
Routes package: one blueprint per area, registered by init_app
"""

from stockroom.logger import get_logger

logger = get_logger("stockroom.routes")


def init_app(app):
    """Register all route blueprints with the Flask app"""
    from .main import main
    from .inventory.routes import inventory_bp
    from .orders.routes import orders_bp

    app.register_blueprint(main)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    logger.debug("Registered main, inventory and orders blueprints")

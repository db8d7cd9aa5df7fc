"""
Dashboard
"""

from flask import Blueprint, render_template
from flask_login import login_required, current_user

from stockroom.auth import current_identity
from stockroom.logger import get_logger
from stockroom.services.inventory.product_service import ProductService
from stockroom.services.ordering.order_search_service import OrderSearchService

logger = get_logger("stockroom.routes.main")
main = Blueprint('main', __name__)


@main.route('/')
@login_required
def index():
    """Counts, low-stock products and the latest orders"""
    identity = current_identity()
    stats = ProductService.get_dashboard_counts(identity)
    low_stock = ProductService.low_stock_products(identity)
    recent_orders = OrderSearchService.list_orders(identity, limit=5)

    logger.debug(f"Dashboard for {current_user.username}: {stats}, {len(low_stock)} low on stock")
    return render_template('dashboard.html', low_stock=low_stock, recent_orders=recent_orders, **stats)

"""
Inventory routes: product list, product maintenance, manual stock adjustments, ledger
"""
from urllib.parse import urlparse

from flask import Blueprint, render_template, request, flash, redirect, url_for
from flask_login import login_required, current_user

from stockroom.auth import current_identity
from stockroom.business.errors import StockroomDomainError
from stockroom.business.inventory.products.product_context import ProductContext
from stockroom.business.inventory.products.product_factory import ProductFactory
from stockroom.data.inventory.product import STOCK_UNITS
from stockroom.data.inventory.stock_transaction import TRANSACTION_TYPES
from stockroom.logger import get_logger
from stockroom.services.inventory.product_service import ProductService
from stockroom.utils.logging_sanitizer import sanitize_form_data

logger = get_logger("stockroom.routes.inventory")

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _local_redirect_target(default):
    target = request.form.get('next')
    if not target or urlparse(target).netloc != '' or not target.startswith('/'):
        return default
    return target


@inventory_bp.route('/')
@login_required
def index():
    """Product list with the add-product form"""
    search = request.args.get('search', '')
    products = ProductService.list_products(current_identity(), search=search)
    logger.debug(f"Inventory list accessed by {current_user.username} ({len(products)} products)")
    return render_template(
        'inventory/index.html',
        products=products,
        search=search,
        units=STOCK_UNITS,
        directions=TRANSACTION_TYPES,
    )


@inventory_bp.route('/create', methods=['POST'])
@login_required
def create_product():
    logger.debug(f"Create product form: {sanitize_form_data(request.form)}")
    try:
        product = ProductFactory().create_product(
            current_identity(),
            request.form.get('name'),
            unit=request.form.get('unit', 'kg'),
            current_stock=request.form.get('current_stock') or 0,
            min_stock_alert=request.form.get('min_stock_alert') or 0,
            description=request.form.get('description'),
        )
    except StockroomDomainError as e:
        logger.warning(f"Product not created for {current_user.username}: {e}")
        flash(str(e), 'error')
    else:
        flash(f'Product "{product.name}" added', 'success')
    return redirect(url_for('inventory.index'))


@inventory_bp.route('/<int:product_id>/edit', methods=['POST'])
@login_required
def edit_product(product_id):
    fields = {
        field: request.form.get(field)
        for field in ('name', 'description', 'unit', 'min_stock_alert')
        if field in request.form
    }
    try:
        product = ProductContext(product_id, current_identity()).update(**fields)
    except StockroomDomainError as e:
        logger.warning(f"Product {product_id} not updated: {e}")
        flash(str(e), 'error')
    else:
        flash(f'Product "{product.name}" updated', 'success')
    return redirect(url_for('inventory.index'))


@inventory_bp.route('/<int:product_id>/delete', methods=['POST'])
@login_required
def delete_product(product_id):
    try:
        ProductContext(product_id, current_identity()).delete()
    except StockroomDomainError as e:
        logger.warning(f"Product {product_id} not deleted: {e}")
        flash(str(e), 'error')
    else:
        flash('Product deleted', 'success')
    return redirect(url_for('inventory.index'))


@inventory_bp.route('/<int:product_id>/adjust', methods=['POST'])
@login_required
def adjust_stock(product_id):
    """Manual add/use of stock"""
    direction = (request.form.get('direction') or '').strip().lower()
    try:
        new_stock = ProductContext(product_id, current_identity()).adjust_stock(
            direction,
            request.form.get('amount'),
            notes=request.form.get('notes'),
        )
    except StockroomDomainError as e:
        logger.warning(f"Stock adjustment on product {product_id} by {current_user.username} refused: {e}")
        flash(str(e), 'error')
    else:
        flash(f'Stock updated, now {new_stock}', 'success')
    return redirect(_local_redirect_target(url_for('inventory.index')))


@inventory_bp.route('/<int:product_id>/transactions')
@login_required
def transactions(product_id):
    """Ledger of one product, newest first"""
    try:
        context = ProductContext(product_id, current_identity())
        product = context.product
    except StockroomDomainError as e:
        flash(str(e), 'error')
        return redirect(url_for('inventory.index'))

    limit = request.args.get('limit', type=int)
    history = ProductService.list_transactions(current_identity(), product_id=product_id, limit=limit)
    return render_template(
        'inventory/transactions.html',
        product=product,
        transactions=history,
        directions=TRANSACTION_TYPES,
    )

"""
Supplier order routes
"""
from datetime import datetime
from itertools import zip_longest

from flask import Blueprint, render_template, request, flash, redirect, url_for
from flask_login import login_required, current_user

from stockroom.auth import current_identity
from stockroom.business.errors import PartialFulfillment, StockroomDomainError, ValidationError
from stockroom.business.ordering.order_context import OrderContext
from stockroom.business.ordering.order_factory import OrderFactory
from stockroom.business.ordering.order_state_machine import OrderStateMachine
from stockroom.data.ordering.order import ORDER_STATUSES
from stockroom.logger import get_logger
from stockroom.services.inventory.product_service import ProductService
from stockroom.services.ordering.order_search_service import OrderSearchService
from stockroom.utils.logging_sanitizer import sanitize_form_data

logger = get_logger("stockroom.routes.orders")

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _parse_date(raw, field):
    raw = (raw or '').strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD), got {raw!r}")


def _items_from_form(form):
    """
    Item rows arrive as parallel lists (product_id[], quantity[], unit_price[], item_notes[]).
    Completely blank rows are the empty template row of the form and are skipped.
    """
    rows = zip_longest(
        form.getlist('product_id'),
        form.getlist('quantity'),
        form.getlist('unit_price'),
        form.getlist('item_notes'),
        fillvalue='',
    )
    items = []
    for product_id, quantity, unit_price, notes in rows:
        if not (product_id or '').strip() and not (quantity or '').strip():
            continue
        items.append({
            'product_id': product_id,
            'quantity': quantity,
            'unit_price': unit_price,
            'notes': notes,
        })
    return items


@orders_bp.route('/')
@login_required
def index():
    """Order list (newest first) with the create-order form"""
    identity = current_identity()
    filters = OrderSearchService.parse_filters(request.args)
    orders = OrderSearchService.search(identity, filters)
    logger.debug(f"Orders list accessed by {current_user.username} ({len(orders)} orders)")
    return render_template(
        'orders/index.html',
        orders=orders,
        filters=filters,
        products=ProductService.list_products(identity),
        statuses=ORDER_STATUSES,
        allowed_transitions={
            order.id: sorted(OrderStateMachine.get_allowed_transitions(order.status)) for order in orders
        },
    )


@orders_bp.route('/create', methods=['POST'])
@login_required
def create_order():
    logger.debug(f"Create order form: {sanitize_form_data(request.form)}")
    try:
        order = OrderFactory.create_order(
            current_identity(),
            request.form.get('supplier_name'),
            _items_from_form(request.form),
            order_date=_parse_date(request.form.get('order_date'), 'Order date'),
            expected_arrival_date=_parse_date(request.form.get('expected_arrival_date'), 'Expected arrival date'),
            tracking_number=request.form.get('tracking_number'),
            notes=request.form.get('notes'),
        )
    except StockroomDomainError as e:
        logger.warning(f"Order not created for {current_user.username}: {e}")
        flash(str(e), 'error')
    else:
        flash(f'Order #{order.id} created for {order.supplier_name}', 'success')
    return redirect(url_for('orders.index'))


@orders_bp.route('/<int:order_id>/status', methods=['POST'])
@login_required
def update_status(order_id):
    """Status change; 'completed' credits every item to stock"""
    new_status = request.form.get('status')
    try:
        result = OrderContext(order_id, current_identity()).set_status(new_status)
    except PartialFulfillment as e:
        flash(
            f'Order #{order_id} is completed but {len(e.uncredited_item_ids)} item(s) were not added to stock. '
            f'Use "Resume" to finish.',
            'error',
        )
    except StockroomDomainError as e:
        logger.warning(f"Status change of order {order_id} to {new_status!r} refused: {e}")
        flash(str(e), 'error')
    else:
        if result is not None:
            flash(f'Order #{order_id} completed, {len(result.credits)} item(s) added to stock', 'success')
        else:
            flash(f'Order #{order_id} is now {new_status}', 'success')
    return redirect(url_for('orders.index'))


@orders_bp.route('/<int:order_id>/resume', methods=['POST'])
@login_required
def resume(order_id):
    """Credit the items a partially fulfilled order still owes"""
    try:
        result = OrderContext(order_id, current_identity()).resume_fulfillment()
    except PartialFulfillment as e:
        flash(f'{len(e.uncredited_item_ids)} item(s) of order #{order_id} still could not be added to stock', 'error')
    except StockroomDomainError as e:
        flash(str(e), 'error')
    else:
        if result.credits:
            flash(f'{len(result.credits)} remaining item(s) of order #{order_id} added to stock', 'success')
        else:
            flash(f'Order #{order_id} was already fully added to stock', 'info')
    return redirect(url_for('orders.index'))


@orders_bp.route('/<int:order_id>/tracking', methods=['POST'])
@login_required
def update_tracking(order_id):
    try:
        OrderContext(order_id, current_identity()).update_tracking_number(request.form.get('tracking_number'))
    except StockroomDomainError as e:
        flash(str(e), 'error')
    else:
        flash(f'Tracking number of order #{order_id} updated', 'success')
    return redirect(url_for('orders.index'))

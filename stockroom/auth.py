from flask import Blueprint, render_template, redirect, url_for, flash, request
from flask_login import login_user, logout_user, login_required, current_user
from urllib.parse import urlparse
from stockroom.data.core.user_info.user import User
from stockroom import limiter
from stockroom.logger import get_logger
from stockroom.utils.logging_sanitizer import sanitize_form_data

logger = get_logger("stockroom.auth")
auth = Blueprint('auth', __name__)


def current_identity():
    """Id of the logged-in user, or None. Business code receives this as acting_identity."""
    if current_user.is_authenticated:
        return current_user.id
    return None


@auth.route('/login', methods=['GET', 'POST'])
@limiter.limit("10 per minute", methods=['POST'])
def login():
    if current_user.is_authenticated:
        logger.debug(f"User {current_user.username} already authenticated, redirecting to dashboard")
        return redirect(url_for('main.index'))

    if request.method == 'POST':
        username = (request.form.get('username') or '').strip()
        password = request.form.get('password')

        logger.debug(f"Login attempt: {sanitize_form_data(request.form)}")

        if not username or not password:
            logger.warning(f"Login attempt with missing credentials for username: {username}")
            flash('Please enter both username and password', 'error')
            return render_template('auth/login.html'), 400

        user = User.query.filter_by(username=username).first()

        if user is None or not user.check_password(password):
            logger.warning(f"Failed login attempt for username: {username}")
            flash('Invalid username or password', 'error')
            return render_template('auth/login.html'), 401

        if not user.is_active:
            logger.warning(f"Login attempt for disabled account: {username}")
            flash('Account is disabled', 'error')
            return render_template('auth/login.html'), 403

        login_user(user)
        logger.info(f"Successful login for user: {username}")

        # Only follow relative next links
        next_page = request.args.get('next')
        if not next_page or urlparse(next_page).netloc != '':
            next_page = url_for('main.index')

        flash(f'Welcome, {user.username}!', 'success')
        return redirect(next_page)

    return render_template('auth/login.html')


@auth.route('/logout')
@login_required
def logout():
    username = current_user.username
    logout_user()
    logger.info(f"User logged out: {username}")
    flash('You have been logged out', 'info')
    return redirect(url_for('auth.login'))

"""
Redaction helpers for anything that is about to be logged.

Form posts can carry passwords or tokens; run them through these functions first.
"""

from typing import Any, Dict, Mapping

from werkzeug.datastructures import MultiDict


SENSITIVE_FIELDS = {
    'password',
    'password_confirm',
    'confirm_password',
    'current_password',
    'new_password',
    'secret',
    'secret_key',
    'token',
    'api_key',
    'access_token',
    'refresh_token',
    'session_id',
    'csrf_token',
}

REDACTED = '[REDACTED]'


def sanitize_dict(data: Mapping[str, Any], redact_text: str = REDACTED) -> Dict[str, Any]:
    """
    Copy of data with sensitive values replaced. Keys match case-insensitively and
    nested mappings are sanitized too.

    Example:
        >>> sanitize_dict({'username': 'admin', 'password': 'secret123'})
        {'username': 'admin', 'password': '[REDACTED]'}
    """
    if not data:
        return dict(data or {})

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = redact_text
        elif isinstance(value, Mapping):
            sanitized[key] = sanitize_dict(value, redact_text)
        else:
            sanitized[key] = value
    return sanitized


def sanitize_form_data(form_data: MultiDict, redact_text: str = REDACTED) -> Dict[str, Any]:
    """Sanitize request.form. Repeated fields (order item rows) are kept as lists."""
    flattened = {}
    for key in form_data.keys():
        values = form_data.getlist(key)
        flattened[key] = values[0] if len(values) == 1 else values
    return sanitize_dict(flattened, redact_text)


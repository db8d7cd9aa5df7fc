"""
Passwords and tokens must never reach the logs
"""
from werkzeug.datastructures import ImmutableMultiDict

from stockroom.utils.logging_sanitizer import (
    sanitize_dict,
    sanitize_form_data,
)


def test_sanitize_dict_redacts_sensitive_keys():
    result = sanitize_dict({'username': 'admin', 'Password': 'secret123', 'csrf_token': 'abc'})

    assert result == {'username': 'admin', 'Password': '[REDACTED]', 'csrf_token': '[REDACTED]'}


def test_sanitize_dict_nested_and_empty():
    result = sanitize_dict({'user': {'password': 'x', 'theme': 'dark'}})

    assert result == {'user': {'password': '[REDACTED]', 'theme': 'dark'}}
    assert sanitize_dict({}) == {}
    assert sanitize_dict(None) == {}


def test_sanitize_form_data_keeps_repeated_fields():
    form = ImmutableMultiDict([
        ('supplier_name', 'Mill'),
        ('product_id', '1'),
        ('product_id', '2'),
        ('password', 'hunter2'),
    ])

    result = sanitize_form_data(form)

    assert result == {'supplier_name': 'Mill', 'product_id': ['1', '2'], 'password': '[REDACTED]'}

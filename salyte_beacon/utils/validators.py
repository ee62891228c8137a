"""Request field coercion shared by the route modules."""
import math
from salyte_beacon.utils.errors import ValidationError

MAX_PAGE_SIZE = 100


def get_text(data, field, max_length=None):
    """Stripped string value, None when absent"""
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', error='Invalid field', details={field: 'Expected a string'})
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(
            f'{field} cannot exceed {max_length} characters',
            error='Invalid field',
            details={field: f'Maximum length is {max_length}'}
        )
    return value


def get_number(data, field, required=False):
    """Float value; accepts numeric strings as sent by HTML forms"""
    value = data.get(field)
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required', error='Missing fields', details={field: 'Required'})
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', error='Invalid field', details={field: 'Expected a number'})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number', error='Invalid field', details={field: 'Expected a number'})
    if not math.isfinite(number):
        raise ValidationError(f'{field} must be a finite number', error='Invalid field', details={field: 'Expected a number'})
    return number


def get_int(data, field, default=None):
    value = data.get(field)
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer', error='Invalid field', details={field: 'Expected an integer'})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', error='Invalid field', details={field: 'Expected an integer'})


def get_bool(data, field, default=False):
    value = data.get(field)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def get_pagination(args, default_limit=20):
    """(page, limit) from query args, clamped to sane bounds"""
    page = get_int(args, 'page', 1)
    limit = get_int(args, 'limit', default_limit)
    if page < 1:
        page = 1
    if limit < 1:
        limit = default_limit
    return page, min(limit, MAX_PAGE_SIZE)


def pagination_info(page, limit, total):
    pages = (total + limit - 1) // limit if total else 0
    return {
        'current': page,
        'total': pages,
        'total_items': total,
        'limit': limit,
        'has_next': page * limit < total,
        'has_prev': page > 1
    }

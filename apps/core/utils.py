import json
from datetime import datetime

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q


def parse_date(value):
    """Parse a YYYY-MM-DD query parameter, None when missing or malformed"""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        return None


def filter_date_range(queryset, params, field):
    """Apply ``date_from``/``date_to`` query parameters to ``field``"""
    date_from = parse_date(params.get('date_from'))
    date_to = parse_date(params.get('date_to'))
    if date_from:
        queryset = queryset.filter(**{f'{field}__gte': date_from})
    if date_to:
        queryset = queryset.filter(**{f'{field}__lte': date_to})
    return queryset


def error_payload(exc):
    """Turn a django ValidationError into the ``{'error': ...}`` body used by the API"""
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'error_dict'):
            return {'error': ' '.join(exc.messages), 'fields': exc.message_dict}
        return {'error': ' '.join(exc.messages)}
    return {'error': str(exc)}


def month_and_year(params, today):
    """Read ``month``/``year`` query parameters, defaulting to ``today``"""
    try:
        month = int(params.get('month', today.month))
        year = int(params.get('year', today.year))
    except (TypeError, ValueError):
        return None, None
    if not 1 <= month <= 12:
        return None, None
    return month, year


def filter_by_tag(queryset, tag, field='tags'):
    """Rows whose JSON list of tags contains ``tag``"""
    if not tag:
        return queryset
    lookup = f'{field}__icontains'
    # SQLite stores non-ASCII characters escaped, PostgreSQL keeps them as is
    return queryset.filter(
        Q(**{lookup: json.dumps(tag)}) | Q(**{lookup: json.dumps(tag, ensure_ascii=False)})
    )

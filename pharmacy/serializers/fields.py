import html
import re
from decimal import Decimal

import bleach
from rest_framework import serializers

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


class IsoDateField(serializers.DateField):
    """A ``YYYY-MM-DD`` date; looser ISO spellings such as ``2024-1-5`` are rejected."""

    default_error_messages = {
        'invalid': 'Fecha inválida, use el formato AAAA-MM-DD.',
    }

    def __init__(self, **kwargs):
        kwargs.setdefault('input_formats', ['%Y-%m-%d'])
        super().__init__(**kwargs)

    def to_internal_value(self, value):
        if not isinstance(value, str) or not ISO_DATE_RE.match(value.strip()):
            self.fail('invalid')
        return super().to_internal_value(value.strip())


class CleanCharField(serializers.CharField):
    """Trimmed text with any markup stripped."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        value = html.unescape(bleach.clean(value, tags=set(), strip=True)).strip()
        if not value and not self.allow_blank:
            self.fail('blank')
        return value


class CommaListField(serializers.CharField):
    """Query-string list such as ``status=pendiente,listo``."""

    def __init__(self, *, choices=None, **kwargs):
        self.choices = set(choices or [])
        kwargs.setdefault('required', False)
        kwargs.setdefault('allow_blank', True)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        raw = super().to_internal_value(data)
        values = [s.strip() for s in raw.split(',') if s.strip()]
        if self.choices:
            unknown = [v for v in values if v not in self.choices]
            if unknown:
                raise serializers.ValidationError(f"valores no válidos: {', '.join(unknown)}")
        return values


class UnitsField(serializers.DecimalField):
    """Units to prepare; fractional vials such as ``0.125`` are allowed."""

    def __init__(self, **kwargs):
        kwargs.setdefault('max_digits', 14)
        kwargs.setdefault('decimal_places', 4)
        kwargs.setdefault('min_value', Decimal('0.0001'))
        super().__init__(**kwargs)

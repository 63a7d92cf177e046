"""Shared request-value cleaning helpers."""
import re

ALPHANUM_STRIP_RE = re.compile(r'[^A-Za-z0-9]+')


def clean_text(value, max_length=255):
    return (value or '').strip()[:max_length]


def clean_alphanum(value, default=''):
    cleaned = ALPHANUM_STRIP_RE.sub('', value or '')
    return cleaned or default


def parse_positive_int(value):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    if parsed <= 0:
        return None
    return parsed

import re

from markupsafe import escape

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def sanitize_text(value):
    """Strips control characters and surrounding whitespace."""
    if not isinstance(value, str):
        return value
    return _CONTROL_CHARS.sub('', value).strip()


def sanitize_html(value):
    """Escapes markup in free text that is echoed back to clients."""
    if not isinstance(value, str):
        return value
    return str(escape(sanitize_text(value)))


def sanitize_fields(data, fields, sanitizer=sanitize_text):
    cleaned = dict(data)
    for field in fields:
        if field in cleaned:
            cleaned[field] = sanitizer(cleaned[field])
    return cleaned

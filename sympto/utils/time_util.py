from datetime import datetime, timezone


def utcnow():
    """Naive UTC now, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    if value is None:
        return None
    return value.isoformat() + 'Z' if value.tzinfo is None else value.isoformat()

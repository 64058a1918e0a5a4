from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC: matches what SQLite hands back for DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() + "Z"

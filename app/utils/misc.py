import datetime


def get_utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def get_utc_iso_now() -> str:
    return get_utc_now().isoformat()


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive datetimes read back from backends that drop tzinfo (SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value

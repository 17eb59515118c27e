from datetime import date, datetime, timezone

from app.errors import IntakeError


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def renew_one_year(current: date | None, today: date | None = None) -> date:
    """Move an expiry date one year forward; an empty expiry renews from today."""
    base = current or today or date.today()
    try:
        return base.replace(year=base.year + 1)
    except ValueError:
        # 29 February in a non-leap target year
        return base.replace(year=base.year + 1, day=28)


def parse_date(value: str | None) -> date | None:
    """Parse a stored ``YYYY-MM-DD`` date; anything else is a client error."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise IntakeError(f"Invalid date '{value}', expected YYYY-MM-DD")

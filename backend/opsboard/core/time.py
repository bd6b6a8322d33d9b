from datetime import date, datetime

import pytz


def now_in_tz(tz_name: str) -> datetime:
    return datetime.now(pytz.timezone(tz_name))


def today_in_tz(tz_name: str) -> date:
    """Processing date in the configured business timezone."""
    return now_in_tz(tz_name).date()

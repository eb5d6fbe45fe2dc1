# storefront/utils/delivery.py
from datetime import datetime, timedelta

COURIER_DAYS = {
    "regular": 4,
    "standard": 2,
}


def add_business_days(start: datetime, days: int) -> datetime:
    """Add ``days`` working days to ``start``, skipping Saturdays and Sundays."""
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def estimated_delivery_date(courier_service: str, start: datetime) -> datetime:
    days = COURIER_DAYS.get(courier_service, COURIER_DAYS["regular"])
    return add_business_days(start, days)

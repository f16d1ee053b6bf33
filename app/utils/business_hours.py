import re
from datetime import datetime

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_minutes(value):
    """'09:30' -> 570; None for anything that is not a valid HH:MM string."""
    if not isinstance(value, str):
        return None
    match = TIME_RE.match(value.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes):
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_closed_flag(value):
    return value is True or (isinstance(value, str) and value.lower() == "true")


def day_hours(business_hours, day):
    """
    (open_minutes, close_minutes) for a weekday, or None when the salon is
    closed that day or its entry is missing or malformed.

    Accepts both {open, close} and {opening, closing} entries.
    """
    if not isinstance(business_hours, dict):
        return None
    entry = business_hours.get(day)
    if not isinstance(entry, dict):
        return None
    if is_closed_flag(entry.get("closed")):
        return None

    opens = parse_minutes(entry.get("open", entry.get("opening")))
    closes = parse_minutes(entry.get("close", entry.get("closing")))
    if opens is None or closes is None:
        return None
    return opens, closes


def is_open_at(business_hours, moment: datetime):
    hours = day_hours(business_hours, WEEKDAYS[moment.weekday()])
    if hours is None:
        return False
    opens, closes = hours
    now_minutes = moment.hour * 60 + moment.minute
    return opens <= now_minutes <= closes


def validate_business_hours(business_hours):
    """
    Return a list of validation messages; empty means the payload is
    acceptable. Days may be marked {closed: true} instead of carrying times.
    """
    if not isinstance(business_hours, dict):
        return ["Invalid business hours format"]

    errors = []
    for day, hours in business_hours.items():
        if not isinstance(day, str) or day.lower() not in WEEKDAYS:
            errors.append(f"Invalid day: {day}")
            continue
        if not isinstance(hours, dict):
            errors.append(f"Invalid hours format for {day}")
            continue
        if is_closed_flag(hours.get("closed")):
            continue

        opens_raw = hours.get("open", hours.get("opening"))
        closes_raw = hours.get("close", hours.get("closing"))
        if opens_raw is None or closes_raw is None:
            errors.append(f"Invalid hours format for {day}")
            continue

        opens, closes = parse_minutes(opens_raw), parse_minutes(closes_raw)
        if opens is None or closes is None:
            errors.append(f"Invalid time format for {day}. Use HH:MM format")
        elif opens >= closes:
            errors.append(f"Opening time must be before closing time for {day}")
    return errors


def normalize_business_hours(business_hours):
    """Lowercase day keys and store times under open/close."""
    normalized = {}
    for day, hours in business_hours.items():
        key = day.lower()
        if is_closed_flag(hours.get("closed")):
            normalized[key] = {"closed": True}
            continue
        normalized[key] = {
            "open": hours.get("open", hours.get("opening")).strip(),
            "close": hours.get("close", hours.get("closing")).strip(),
        }
    return normalized

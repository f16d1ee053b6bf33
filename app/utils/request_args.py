from math import isfinite

TRUTHY = ("true", "1", "yes")


def first_arg(args, *names):
    """First non-empty value among several alias names."""
    for name in names:
        value = args.get(name)
        if value is not None and value != "":
            return value
    return None


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY


def parse_float(value):
    """Finite float or None; NaN, inf and junk all mean "not given"."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def parse_int(value):
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def split_terms(value):
    """'hair, nails,,' -> ['hair', 'nails']"""
    if not value:
        return []
    return [term.strip() for term in str(value).split(",") if term.strip()]


def escape_like(term):
    """Escape LIKE wildcards so user text matches literally (use escape='\\')."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

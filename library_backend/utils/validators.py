from datetime import date

from .errors import ValidationError


def require_text(data, field, max_length=None):
    return check_text(data.get(field), field, max_length)


def check_text(value, field, max_length=None):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def optional_text(data, field, default=""):
    value = data.get(field)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def require_count(data, field):
    value = data.get(field)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def check_iso_date(value, field):
    value = check_text(value, field)
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")
    return value


def check_date_range(from_date, to_date, to_field="toDate"):
    if date.fromisoformat(from_date) > date.fromisoformat(to_date):
        raise ValidationError(f"fromDate cannot be after {to_field}")


def check_enum(value, field, enum_cls):
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        raise ValidationError(f"{field} must be one of {', '.join(allowed)}")
    return value


def id_list(data, field):
    value = data.get(field) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of ids")
    # order kept, duplicates dropped
    return list(dict.fromkeys(value))


def reject_unknown_fields(patch, allowed):
    unknown = sorted(set(patch) - set(allowed))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

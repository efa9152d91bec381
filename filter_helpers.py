from typing import Optional

from errors import ValidationError

TRUE_VALUES = {"true", "1", "on", "yes"}
FALSE_VALUES = {"false", "0", "off", "no"}


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if value.strip() == "":
        return None
    return value


def parse_id(value: str, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid {what} id") from None


def parse_optional_id(value: Optional[str], what: str) -> Optional[int]:
    value = blank_to_none(value)
    if value is None:
        return None
    return parse_id(value, what)


def parse_bool_flag(value: Optional[str]) -> Optional[bool]:
    # unknown values mean "no filter"
    value = (value or "").strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return None

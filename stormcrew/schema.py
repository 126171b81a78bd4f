from typing import Any, Dict, List, Tuple

from .errors import InvalidArgument
from .normalize import normalize_phone, split_list

REQUIRED_STR_FIELDS = ["company", "name"]
OPTIONAL_STR_FIELDS = [
    "email",
    "phone",
    "category",
    "city",
    "state",
    "full_address",
]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _looks_like_email(v: str) -> bool:
    local, sep, domain = v.partition("@")
    return bool(sep and local and "." in domain and not domain.startswith("."))


def validate_identity_record(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Only shape checks: contact values are not required to be well formed.
    """
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    # Optional strings: if present (and not null), must be strings
    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    return errors


def validate_identity_record_strict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Strict validation used by bulk imports: every email entry must look like an
    address and every phone entry must carry at least 10 digits.
    """
    errors = validate_identity_record(data)

    email = data.get("email")
    if isinstance(email, str):
        for entry in split_list(email):
            if not _looks_like_email(entry):
                errors.append(f"Field 'email' has an invalid entry: {entry}")

    phone = data.get("phone")
    if isinstance(phone, str):
        for entry in split_list(phone):
            if len(normalize_phone(entry)) < 10:
                errors.append(f"Field 'phone' has an entry with fewer than 10 digits: {entry}")

    return (len(errors) == 0, errors)


def is_id_string(value: str) -> bool:
    """True for ASCII digit strings that int() accepts."""
    value = value.strip()
    return value.isascii() and value.isdigit()


def coerce_record_id(value: Any, kind: str = "record") -> int:
    """
    Coerce an id received from a caller into a positive int.

    Raises:
        InvalidArgument: If the value is not a positive integer (or digit string)
    """
    if isinstance(value, bool):
        raise InvalidArgument(f"Malformed {kind} id: {value!r}")
    if isinstance(value, int):
        record_id = value
    elif isinstance(value, str) and is_id_string(value):
        record_id = int(value.strip())
    else:
        raise InvalidArgument(f"Malformed {kind} id: {value!r}")
    if record_id <= 0:
        raise InvalidArgument(f"Malformed {kind} id: {value!r}")
    return record_id

import re
from typing import List, Optional

LIST_DELIMITERS = re.compile(r"[;,]")
NON_DIGITS = re.compile(r"\D")


def normalize_text(s: Optional[str]) -> str:
    if not s:
        return ""
    return s.strip().lower()


def normalize_company(company: Optional[str]) -> str:
    return normalize_text(company)


def normalize_name(name: Optional[str]) -> str:
    return normalize_text(name)


def normalize_email(email: Optional[str]) -> str:
    return normalize_text(email)


def normalize_phone(phone: Optional[str]) -> str:
    if not phone:
        return ""
    digits = NON_DIGITS.sub("", phone)
    # +1-555-123-4567 and 555-123-4567 are the same line
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    # Extensions are dropped: "555-123-4567 x89"
    if len(digits) > 10:
        digits = digits[:10]
    return digits


def split_list(value: Optional[str]) -> List[str]:
    """Split a comma/semicolon delimited contact field into trimmed, non-empty entries."""
    if not value:
        return []
    return [part.strip() for part in LIST_DELIMITERS.split(value) if part.strip()]


def normalize_email_list(value: Optional[str]) -> List[str]:
    return [e for e in (normalize_email(part) for part in split_list(value)) if e]


def normalize_phone_list(value: Optional[str]) -> List[str]:
    return [p for p in (normalize_phone(part) for part in split_list(value)) if p]


def normalize_location(location: Optional[str]) -> str:
    return normalize_text(location)

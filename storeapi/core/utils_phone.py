import re
from typing import Optional

from storeapi.core.config import DEFAULT_COUNTRY_CODE


def is_valid_phone(phone: str) -> bool:
    return bool(re.fullmatch(r"\+[0-9]{8,15}", phone))


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    phone = re.sub(r"[\s\-().]", "", phone)
    if not phone:
        return None
    if phone.startswith("00"):
        return "+" + phone[2:]
    if phone.startswith("+"):
        return phone
    return DEFAULT_COUNTRY_CODE + phone

"""Masking helpers for customer PII in log lines."""

from typing import Any, Dict, Iterable

# Payload keys whose values are customer PII
SENSITIVE_KEYS = frozenset(
    {"customer_email", "customer_phone", "email", "phone", "contact_email", "contact_phone"}
)


def mask_email(email: str) -> str:
    """
    Mask email address for logging purposes.

    Example: jane@example.com -> j***@e***.com

    Args:
        email: Email address to mask

    Returns:
        Masked email address
    """
    if not email or email.count("@") != 1:
        return "***"

    local, domain = email.split("@")
    masked_local = local[0] + "***" if local else "***"

    domain_parts = domain.split(".")
    if len(domain_parts) >= 2 and domain_parts[0]:
        masked_domain = domain_parts[0][0] + "***." + ".".join(domain_parts[1:])
    else:
        masked_domain = "***"

    return f"{masked_local}@{masked_domain}"


def mask_phone(phone: str) -> str:
    """
    Mask phone number for logging purposes.

    Example: +447700900123 -> +***0123

    Args:
        phone: Phone number to mask

    Returns:
        Masked phone number
    """
    if not phone or len(phone) < 4:
        return "***"
    prefix = "+" if phone.startswith("+") else ""
    return prefix + "***" + phone[-4:]


def mask_payload(payload: Dict[str, Any], keys: Iterable[str] = SENSITIVE_KEYS) -> Dict[str, Any]:
    """
    Return a shallow copy of ``payload`` with PII values masked.

    Nested dictionaries are masked recursively.
    """
    keys = frozenset(keys)
    masked: Dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            masked[key] = mask_payload(value, keys)
        elif key in keys and isinstance(value, str):
            masked[key] = mask_email(value) if "@" in value else mask_phone(value)
        else:
            masked[key] = value
    return masked

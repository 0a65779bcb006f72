"""Utility functions module."""

from .masking import mask_email, mask_payload, mask_phone

__all__ = [
    "mask_email",
    "mask_payload",
    "mask_phone",
]

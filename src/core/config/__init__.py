"""Configuration management module."""

from .settings import BookingSettings, get_settings, reset_settings

__all__ = [
    "BookingSettings",
    "get_settings",
    "reset_settings",
]

"""Utility helpers for reusable functionality."""

from .datetime import (
    at_time_of_day,
    ensure_app_naive_datetime,
    ensure_app_timezone,
    get_app_timezone,
    now_in_app_naive_datetime,
    now_in_app_timezone,
    parse_datetime,
)

__all__ = [
    "at_time_of_day",
    "ensure_app_naive_datetime",
    "ensure_app_timezone",
    "get_app_timezone",
    "now_in_app_naive_datetime",
    "now_in_app_timezone",
    "parse_datetime",
]

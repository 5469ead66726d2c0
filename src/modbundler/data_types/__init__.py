"""Structured record types taking part in merges."""

from .hero_info import HeroInfo
from .localization import StringsTable

__all__ = ["HeroInfo", "StringsTable"]

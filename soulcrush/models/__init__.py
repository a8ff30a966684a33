"""
Data models for the soulcrush application tracker.
"""

from soulcrush.models.application import Application
from soulcrush.models.company import Company
from soulcrush.models.status import Status, advance, parse_status, render_status

__all__ = ["Application", "Company", "Status", "advance", "parse_status", "render_status"]

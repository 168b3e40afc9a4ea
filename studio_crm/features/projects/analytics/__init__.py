"""
Analytics over design projects.
"""

from .address import ParsedAddress, UnparsedAddress, parse_address
from .service import AnalyticsRange, ProjectAnalytics, build_analytics

__all__ = [
    "AnalyticsRange",
    "ParsedAddress",
    "ProjectAnalytics",
    "UnparsedAddress",
    "build_analytics",
    "parse_address",
]

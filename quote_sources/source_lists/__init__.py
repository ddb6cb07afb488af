"""
Source lists - answer quote requests for many source ids.
"""

from quote_sources.source_lists.api import APISourceList
from quote_sources.source_lists.local import LocalSourceList
from quote_sources.source_lists.overridable import OverridableSourceList


__all__ = [
    "APISourceList",
    "LocalSourceList",
    "OverridableSourceList",
]

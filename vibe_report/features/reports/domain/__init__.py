"""
Domain subpackage for the vibe report feature.
"""

from .models import (
    AnalysisRequest,
    GroupReport,
    ParsedReport,
    PersonReport,
)

__all__ = [
    "AnalysisRequest",
    "GroupReport",
    "ParsedReport",
    "PersonReport",
]

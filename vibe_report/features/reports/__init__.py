"""
Vibe report feature package.

Prompting, streamed generation, parsing and the analysis flow that ties
them to the credit ledger. Routers are imported from `api.router` by the
application so importing the domain never pulls in the HTTP layer.
"""

from .domain import AnalysisRequest, GroupReport, ParsedReport, PersonReport  # noqa: F401

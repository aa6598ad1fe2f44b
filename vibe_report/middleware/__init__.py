"""
Middleware components for request processing.

- Request context (request ID, client IP)
- CORS for the browser client
"""

from vibe_report.middleware.cors import CORSMiddleware
from vibe_report.middleware.request_context import RequestContextMiddleware

__all__ = [
    "CORSMiddleware",
    "RequestContextMiddleware",
]

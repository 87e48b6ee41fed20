"""
Public Pydantic schemas used by FastAPI routes and tests.

Schemas are grouped by area (catalog, ledger, realtime) and also include
common reusable models such as standard responses and the error envelope.
"""

from .common import ErrorResponse, MessageResponse  # noqa: F401

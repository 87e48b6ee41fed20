"""
Stock ledger service.

Tracks item quantities across locations and records every change as an
auditable transaction, with an approval workflow for gated operations and a
two-phase repair flow.
"""

__version__ = "0.1.0"

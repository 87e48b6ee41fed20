"""
API route modules for the stock ledger.

This package contains subrouters for:
- Items and Locations: catalog and registry
- Stock: add, transfer, transfer review, stock per location
- Disposals and Repairs: workflow-gated and two-phase operations
- Transactions and Dashboard: read-only views
- Reports: CSV/Excel exports of stock levels and ledger history

Routers are included from stockledger.api.main (under the /api/v1 prefix).
"""

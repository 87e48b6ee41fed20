"""Business services: ledger operations, approval workflow, repairs, catalog and reporting."""

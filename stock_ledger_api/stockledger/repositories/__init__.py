"""
Repository layer for data access.

Repositories translate between domain entities and storage. Two stores are
provided behind the same unit-of-work interface: SQLAlchemy (production) and
an in-memory store used by tests and local tooling.
"""

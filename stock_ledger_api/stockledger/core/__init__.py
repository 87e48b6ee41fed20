"""
Core application utilities for settings, logging, tokens and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Structured logging with correlation/actor context
- Dependency helpers (current actor, role checks, service container)
"""

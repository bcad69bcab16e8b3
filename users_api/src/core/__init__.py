"""
Core application utilities for settings, logging and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Logging configuration with correlation/user context
- Dependency helpers (shared repository, worker index)
"""

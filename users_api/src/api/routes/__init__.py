"""
API route modules.

This package contains subrouters for:
- Users: get, create, replace and delete user records
- Health: liveness probe

Routers are included from src.api.main (users under the /v1 prefix).
"""

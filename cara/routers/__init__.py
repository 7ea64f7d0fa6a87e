"""FastAPI routers for the CARA backend.

Routers are grouped by domain (ai, documents) and mounted under /v1.
"""

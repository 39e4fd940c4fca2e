"""
API routers.

Endpoints stay thin: validation, gating and HTTP mapping. Business logic
lives in agenda.services.
"""

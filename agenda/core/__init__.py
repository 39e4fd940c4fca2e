"""
Core utilities shared by the API, middleware and services.

Configuration, exceptions, request gating (rate limiting, CSRF),
in-process caching and the filter vocabulary live here.
"""

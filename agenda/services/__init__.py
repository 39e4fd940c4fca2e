"""
Services module for business logic separation.

This module contains the listing URL logic (segment extraction, filter
parsing, canonical redirects), the backend client and catalog caches, and
the account services, keeping them separate from API endpoints.
"""

"""Event listing service package."""

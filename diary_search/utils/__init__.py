"""
Utility modules for the diary search service.

This package contains utility functions used across the application,
including HTTP utilities, text matching and cache key construction.
"""

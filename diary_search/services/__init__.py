"""
Services package for the diary search service.

This package contains the service modules that implement
the core business logic of the application: caching, invalidation,
search, throttling and the record store clients.
"""

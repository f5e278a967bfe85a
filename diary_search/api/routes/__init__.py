"""
Routes package for the diary search service.

This package contains API route definitions for all endpoints.
"""

from . import entry_routes
from . import search_routes
from . import health

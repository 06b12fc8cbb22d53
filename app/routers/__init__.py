"""
API Routers
Separate router modules for each domain.
"""

from app.routers import external_tests

__all__ = ["external_tests"]

"""
HTTP layer of the purchase-order back office.
"""
from .app import create_app

__all__ = ["create_app"]

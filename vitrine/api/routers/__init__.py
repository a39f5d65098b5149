"""Expose API routers."""
from . import checkout, plans, verification

__all__ = ["checkout", "plans", "verification"]

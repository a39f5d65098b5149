"""FastAPI dependency helpers."""
from .auth import get_current_owner, get_optional_owner
from .checkout import get_catalog_snapshot, get_checkout_flow

__all__ = ["get_catalog_snapshot", "get_checkout_flow", "get_current_owner", "get_optional_owner"]

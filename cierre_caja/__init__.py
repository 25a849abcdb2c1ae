"""Daily cash-register closing ("cierre de caja") backend."""
from .api import app

__all__ = ["app"]

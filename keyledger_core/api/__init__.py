from .app import create_app
from .routes import create_key_router

__all__ = ["create_app", "create_key_router"]

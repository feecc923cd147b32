"""
Routers package for FastAPI endpoints.

Organized by domain:
- auth: Registration, login and admin bootstrap
- users: User directory management
- pdf: Upload, extraction and processed file access
"""

from . import auth, pdf, users

__all__ = ["auth", "pdf", "users"]

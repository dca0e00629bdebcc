# edu_erp/api/__init__.py
from .v1.api import api_router
from .deps import oauth2_scheme, db_session, current_user, require_roles

__all__ = ["api_router", "oauth2_scheme", "db_session", "current_user", "require_roles"]

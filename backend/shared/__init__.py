"""
Shared module for common code used by the REST API and the realtime gateway.

- shared.config: settings (pydantic-settings), structured logging, constants
- shared.infrastructure: SQLAlchemy engine and sessions, store error
  translation, request correlation ids
- shared.security: JWT signing and verification, role checks, bcrypt
  password hashing, slowapi rate limiting
- shared.utils: exception taxonomy and shared pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import current_user_context, authorize
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, OrderStatus
    from shared.utils.exceptions import NotFoundError, ConflictError
"""

"""Authentication / authorization helpers.

Auth is intentionally lightweight:

- Users live in a static JSON file (username, password hash, roles)
- JWT access tokens (HS256) carry the username and roles
- A fixed role -> HTTP method table decides what a token may do

Clients send `Authorization: Bearer <token>` on every request except
`POST /login` and CORS preflights.
"""

from .deps import get_current_claims, require_method_permission
from .permissions import allowed_methods
from .users import User, authenticate

__all__ = [
    "get_current_claims",
    "require_method_permission",
    "allowed_methods",
    "User",
    "authenticate",
]

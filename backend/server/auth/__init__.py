from server.auth.backend import AuthCookieBackend
from server.auth.models import AuthenticatedAccount
from server.auth.policy import public_route, tree_route, validate_route_auth_policy

__all__ = [
    "AuthCookieBackend",
    "AuthenticatedAccount",
    "public_route",
    "tree_route",
    "validate_route_auth_policy",
]

"""
Token service - bearer token verification and claims-based authorization.

Tokens are issued and fully authenticated by the upstream gateway; this
service only checks the signature and decides whether the claims allow a CRUD
operation.
"""
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Union

import jwt

from application.context import UserContext
from core.config import settings
from core.logging_config import get_logger
from shared.codes import Operation


logger = get_logger(__name__)


# Roles that grant each operation; an explicit permission named after the
# operation grants it as well.
ROLE_GRANTS: Mapping[Operation, FrozenSet[str]] = {
    Operation.CREATE: frozenset({"admin", "write"}),
    Operation.READ: frozenset({"admin", "write", "read"}),
    Operation.UPDATE: frozenset({"admin", "write"}),
    Operation.DELETE: frozenset({"admin"}),
}

_METHOD_PREFIXES = (
    (("create",), Operation.CREATE),
    (("get", "list", "find"), Operation.READ),
    (("update", "patch"), Operation.UPDATE),
    (("delete", "remove"), Operation.DELETE),
)


def operation_for_method(method: str) -> Operation:
    """Map a gRPC method (full path or bare name) to a CRUD operation.

    Case-insensitive prefix match on the final path segment. Unrecognized
    names fall back to READ.
    """
    name = method.rsplit("/", 1)[-1].lower()
    for prefixes, operation in _METHOD_PREFIXES:
        if name.startswith(prefixes):
            return operation
    return Operation.READ


def _claim_values(claims: Mapping[str, Any], *keys: str) -> FrozenSet[str]:
    values = set()
    for key in keys:
        raw = claims.get(key)
        if raw is None:
            continue
        if isinstance(raw, str):
            values.add(raw)
        elif isinstance(raw, Iterable):
            values.update(str(v) for v in raw)
        else:
            values.add(str(raw))
    return frozenset(values)


def _first_claim(claims: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = claims.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def user_context_from_claims(claims: Mapping[str, Any]) -> UserContext:
    return UserContext(
        user_id=_first_claim(claims, "sub", "nameid") or "unknown",
        user_name=_first_claim(claims, "name", "unique_name"),
        client_id=_first_claim(claims, "client_id"),
        roles=_claim_values(claims, "role", "roles"),
        permissions=_claim_values(claims, "permission", "permissions"),
    )


class TokenService:
    """Signature-only JWT verification plus the operation decision table."""

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM
        if not self._secret_key:
            raise ValueError("A secret key is required to verify tokens")

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify the signature and return the raw claims.

        Expiry, issuer, audience and not-before are the gateway's business.
        """
        return jwt.decode(
            token,
            self._secret_key,
            algorithms=[self._algorithm],
            options={
                "verify_signature": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_iss": False,
                "verify_aud": False,
                "require": [],
            },
        )

    def validate_token(self, token: Optional[str]) -> Optional[UserContext]:
        """Return the caller's claims, or None for any malformed or forged token."""
        if not token:
            return None
        try:
            claims = self.decode(token)
        except jwt.InvalidTokenError as exc:
            logger.warning("jwt_validation_failed", reason=str(exc))
            return None
        except Exception as exc:
            logger.error("jwt_validation_error", error=str(exc), exc_info=True)
            return None

        user = user_context_from_claims(claims)
        logger.debug("jwt_validated", user_id=user.user_id)
        return user

    def is_authorized(self, user: Optional[UserContext], operation: Union[Operation, str]) -> bool:
        if user is None:
            logger.warning("authorization_denied", reason="unauthenticated")
            return False

        try:
            op = Operation(str(getattr(operation, "value", operation)).lower())
        except ValueError:
            logger.warning("authorization_denied", reason="unknown_operation", operation=str(operation))
            return False

        authorized = op.value in user.permissions or bool(ROLE_GRANTS[op] & user.roles)
        if authorized:
            logger.debug("authorization_granted", operation=op.value, user_id=user.user_id)
        else:
            logger.warning(
                "authorization_denied",
                operation=op.value,
                user_id=user.user_id,
                roles=sorted(user.roles),
                permissions=sorted(user.permissions),
            )
        return authorized


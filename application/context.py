"""
Per-call context objects.

The transport pipeline builds one `CallContext` per RPC and hands it to the
application service explicitly; nothing here is stored in module globals.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

from shared.codes import Operation


@dataclass(frozen=True)
class UserContext:
    """Claims extracted from a verified token. Never persisted."""

    user_id: str
    user_name: Optional[str] = None
    client_id: Optional[str] = None
    roles: FrozenSet[str] = frozenset()
    permissions: FrozenSet[str] = frozenset()


@dataclass
class CallContext:
    method: str = ""
    request_id: str = ""
    operation: Optional[Operation] = None
    user: Optional[UserContext] = None
    # Status code name recorded by whichever pipeline step ended the call
    status: Optional[str] = None

    @property
    def method_name(self) -> str:
        """Final path segment of the full method, e.g. `CreateItem`."""
        return self.method.rsplit("/", 1)[-1] or "unknown"

    def log_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"method": self.method_name, "request_id": self.request_id}
        if self.operation is not None:
            fields["operation"] = self.operation.value
        if self.user is not None:
            fields["user_id"] = self.user.user_id
        return fields

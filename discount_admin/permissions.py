from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .errors import AuthorizationError

logger = logging.getLogger(__name__)


class PermissionGate(Protocol):
    def require_permission(self, name: str) -> None: ...


class StaticPermissionGate:
    """Grants a fixed set of permissions, e.g. from settings."""

    def __init__(self, granted: Iterable[str]):
        self.granted = frozenset(granted)

    def require_permission(self, name: str) -> None:
        if name not in self.granted:
            logger.warning("Permission denied: %s", name)
            raise AuthorizationError(name)

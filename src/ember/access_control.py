"""Per-model access control.

Each operation kind (``create``, ``read``, ``update``, ``delete`` or a custom
permission name) maps to a :class:`Permission`: a predicate over the current
authenticator and, optionally, a key path naming the property that must equal
the authenticator for a row to be reachable. Predicates may be booleans,
callables returning booleans, or callables returning awaitables of booleans.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Union

Predicate = Union[bool, Callable[..., Union[bool, Awaitable[bool]]]]

CRUD_KINDS: tuple[str, ...] = ("create", "read", "update", "delete")


@dataclass(frozen=True, slots=True)
class Permission:
    predicate: Predicate = True
    key_path: str | None = None

    def function(self) -> Callable[[Any], bool | Awaitable[bool]]:
        predicate = self.predicate
        if callable(predicate):
            return predicate
        return lambda authenticator: bool(predicate)


def is_authenticated(authenticator: Any) -> bool:
    return authenticator is not None


def owned_by(key_path: str, predicate: Predicate = is_authenticated) -> Permission:
    """Permit authenticated callers, restricted to rows where ``key_path`` is the caller."""

    return Permission(predicate=predicate, key_path=key_path)


def _deny(authenticator: Any) -> bool:
    return False


async def resolve_permission(value: bool | Awaitable[bool]) -> bool:
    """Normalize a synchronous or asynchronous predicate result to a boolean."""

    if inspect.isawaitable(value):
        value = await value
    return bool(value)


class AccessControl:
    """Access control policy of one model.

    The CRUD kinds are open unless configured; unknown custom kinds are denied.
    """

    def __init__(
        self,
        *,
        create: Predicate | Permission = True,
        read: Predicate | Permission = True,
        update: Predicate | Permission = True,
        delete: Predicate | Permission = True,
        **custom: Predicate | Permission,
    ) -> None:
        permissions = {"create": create, "read": read, "update": update, "delete": delete}
        permissions.update(custom)
        self._permissions: Mapping[str, Permission] = MappingProxyType(
            {kind: _as_permission(value) for kind, value in permissions.items()}
        )

    @property
    def permissions(self) -> Mapping[str, Permission]:
        return self._permissions

    def get_permission_function(self, kind: str) -> Callable[[Any], bool | Awaitable[bool]]:
        permission = self._permissions.get(kind)
        if permission is None:
            return _deny
        return permission.function()

    def get_permission_key_path(self, kind: str) -> str | None:
        permission = self._permissions.get(kind)
        return permission.key_path if permission is not None else None

    def can_create(self, authenticator: Any) -> bool | Awaitable[bool]:
        return self.get_permission_function("create")(authenticator)

    def can_read(self, authenticator: Any) -> bool | Awaitable[bool]:
        return self.get_permission_function("read")(authenticator)

    def can_update(self, authenticator: Any) -> bool | Awaitable[bool]:
        return self.get_permission_function("update")(authenticator)

    def can_delete(self, authenticator: Any) -> bool | Awaitable[bool]:
        return self.get_permission_function("delete")(authenticator)

    async def check(self, kind: str, authenticator: Any) -> bool:
        return await resolve_permission(self.get_permission_function(kind)(authenticator))


def _as_permission(value: Predicate | Permission) -> Permission:
    if isinstance(value, Permission):
        return value
    if isinstance(value, bool) or callable(value):
        return Permission(predicate=value)
    raise TypeError(f"Unsupported access control predicate: {value!r}")


__all__ = [
    "CRUD_KINDS",
    "AccessControl",
    "Permission",
    "Predicate",
    "is_authenticated",
    "owned_by",
    "resolve_permission",
]

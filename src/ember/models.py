"""Model collaborator consumed by the generated controllers.

Persistence is not the framework's concern. This module defines the narrow
contract the controllers rely on (properties, associations, access control and
async ``create``/``find``/``get_one``/``update`` calls) together with an
in-memory implementation suitable for tests, prototypes and the CLI.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Mapping

from .access_control import AccessControl, Predicate
from .authentication import PasswordHasher, generate_access_token
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Record = dict[str, Any]
MethodHandler = Callable[..., Awaitable[Any] | Any]

PASSWORD_PROPERTY = "password"
ACCESS_TOKEN_PROPERTY = "accessToken"


@dataclass(frozen=True, slots=True)
class PropertyOptions:
    can_update: bool | None = None
    has_many: str | None = None
    owner_key: str | None = None
    has_method: MethodHandler | None = None
    can_create: Predicate | None = None
    authenticate: bool = False
    automatic: bool = False


@dataclass(frozen=True, slots=True)
class Property:
    name: str
    options: PropertyOptions = PropertyOptions()

    @property
    def is_association(self) -> bool:
        return self.options.has_many is not None

    @property
    def is_stored(self) -> bool:
        return self.options.has_many is None and self.options.has_method is None


def prop(*, can_update: bool | None = None) -> PropertyOptions:
    return PropertyOptions(can_update=can_update)


def authenticate() -> PropertyOptions:
    """Mark the identifying credential of an authenticator model (e.g. its email)."""

    return PropertyOptions(authenticate=True, can_update=False)


def automatic_owner() -> PropertyOptions:
    """A property filled with the current authenticator on create."""

    return PropertyOptions(automatic=True, can_update=False)


def has_many(
    related: str,
    *,
    owner_key: str | None = None,
    can_create: Predicate | None = None,
    can_update: bool | None = None,
) -> PropertyOptions:
    return PropertyOptions(has_many=related, owner_key=owner_key, can_create=can_create, can_update=can_update)


def has_method(handler: MethodHandler) -> PropertyOptions:
    return PropertyOptions(has_method=handler, can_update=False)


@dataclass(frozen=True, slots=True)
class ModelOptions:
    plural: str
    automatic_property_name: str | None = None


class Association:
    """A has-many property joining owner rows to rows of a related model."""

    __slots__ = ("name", "owner", "related_name", "owner_key", "can_create")

    def __init__(self, *, name: str, owner: "Model", related_name: str, owner_key: str, can_create: Predicate | None) -> None:
        self.name = name
        self.owner = owner
        self.related_name = related_name
        self.owner_key = owner_key
        self.can_create = can_create

    @property
    def related(self) -> "Model":
        return self.owner.models[self.related_name]

    def scope(self, owner_id: Any, where: Mapping[str, Any] | None = None) -> dict[str, Any]:
        scoped = dict(where or {})
        scoped[self.owner_key] = owner_id
        return scoped

    async def create(self, owner_id: Any, fields: Mapping[str, Any]) -> Record:
        return await self.related.create(self.scope(owner_id, fields))

    async def find(self, owner_id: Any, where: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None) -> list[Record]:
        return await self.related.find(self.scope(owner_id, where), options)


class Model:
    """In-memory model with the contract expected by the model controllers."""

    def __init__(
        self,
        models: "Models",
        name: str,
        properties: Mapping[str, PropertyOptions] | None = None,
        *,
        plural: str | None = None,
        access_control: AccessControl | None = None,
    ) -> None:
        self.models = models
        self.name = name
        self._access_control = access_control or AccessControl()
        self._properties: dict[str, Property] = {
            property_name: Property(property_name, options) for property_name, options in (properties or {}).items()
        }
        if self.is_authenticator():
            self._properties.setdefault(PASSWORD_PROPERTY, Property(PASSWORD_PROPERTY))
            self._properties.setdefault(ACCESS_TOKEN_PROPERTY, Property(ACCESS_TOKEN_PROPERTY, PropertyOptions(can_update=False)))
        automatic = [p.name for p in self._properties.values() if p.options.automatic]
        if len(automatic) > 1:
            raise ConfigurationError(f"Model {name} declares more than one automatic owner property")
        self.options = ModelOptions(
            plural=plural or pluralize(name),
            automatic_property_name=automatic[0] if automatic else None,
        )
        self._rows: dict[str, Record] = {}
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Model({self.name!r})"

    @property
    def plural(self) -> str:
        return self.options.plural

    @property
    def properties(self) -> Mapping[str, Property]:
        return dict(self._properties)

    def get_property(self, name: str) -> Property | None:
        return self._properties.get(name)

    def get_access_control(self) -> AccessControl:
        return self._access_control

    def get_association(self, name: str) -> Association:
        property_ = self._properties.get(name)
        if property_ is None or property_.options.has_many is None:
            raise ConfigurationError(f"Model {self.name} has no association {name!r}")
        return Association(
            name=name,
            owner=self,
            related_name=property_.options.has_many,
            owner_key=property_.options.owner_key or _default_owner_key(self.name),
            can_create=property_.options.can_create,
        )

    def associations(self) -> list[Property]:
        return [p for p in self._properties.values() if p.is_association]

    def method_properties(self) -> list[Property]:
        return [p for p in self._properties.values() if p.options.has_method is not None]

    def is_authenticator(self) -> bool:
        return any(p.options.authenticate for p in self._properties.values())

    def authenticating_property(self) -> str | None:
        for property_ in self._properties.values():
            if property_.options.authenticate:
                return property_.name
        return None

    # ------------------------------------------------------------------ persistence
    async def create(self, fields: Mapping[str, Any]) -> Record:
        record: Record = {"id": uuid.uuid4().hex}
        for key, value in fields.items():
            property_ = self._properties.get(key)
            if property_ is None or not property_.is_stored or key == "id":
                continue
            record[key] = _reference(value)
        if self.is_authenticator():
            password = record.get(PASSWORD_PROPERTY)
            if password:
                record[PASSWORD_PROPERTY] = await self.models.password_hasher.hash(str(password))
            record[ACCESS_TOKEN_PROPERTY] = generate_access_token()
        async with self._lock:
            self._rows[record["id"]] = record
        logger.debug("Created %s %s", self.name, record["id"])
        return copy.deepcopy(record)

    async def find(self, where: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None) -> list[Record]:
        matches = [row for row in self._rows.values() if _matches(row, where or {})]
        matches = _apply_options(matches, options or {})
        return [copy.deepcopy(row) for row in matches]

    async def get_one(self, where: Mapping[str, Any]) -> Record | None:
        for row in self._rows.values():
            if _matches(row, where):
                return copy.deepcopy(row)
        return None

    find_one = get_one

    async def update(self, where: Mapping[str, Any], changes: Mapping[str, Any]) -> Record | None:
        """Update the first row matching ``where``; ``None`` when nothing matched."""

        async with self._lock:
            for row in self._rows.values():
                if not _matches(row, where):
                    continue
                for key, value in changes.items():
                    property_ = self._properties.get(key)
                    if property_ is None or not property_.is_stored or key == "id":
                        continue
                    row[key] = _reference(value)
                if self.is_authenticator() and PASSWORD_PROPERTY in changes:
                    row[PASSWORD_PROPERTY] = await self.models.password_hasher.hash(str(changes[PASSWORD_PROPERTY]))
                return copy.deepcopy(row)
        return None


class Models:
    """Registry of models available to controllers, addressable by name."""

    def __init__(self, *, password_hasher: PasswordHasher | None = None) -> None:
        self._models: dict[str, Model] = {}
        self.password_hasher = password_hasher or PasswordHasher()

    def define(
        self,
        name: str,
        properties: Mapping[str, PropertyOptions] | None = None,
        *,
        plural: str | None = None,
        access_control: AccessControl | None = None,
    ) -> Model:
        if name in self._models:
            raise ConfigurationError(f"Model {name} already defined")
        model = Model(self, name, properties, plural=plural, access_control=access_control)
        self._models[name] = model
        return model

    def __getitem__(self, name: str) -> Model:
        try:
            return self._models[name]
        except KeyError as exc:
            raise ConfigurationError(f"Model {name} is not defined") from exc

    def __getattr__(self, name: str) -> Model:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._models[name]
        except KeyError as exc:
            raise AttributeError(name) from exc

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[Model]:
        return iter(tuple(self._models.values()))

    def __len__(self) -> int:
        return len(self._models)

    def get_authenticator(self) -> Model | None:
        for model in self._models.values():
            if model.is_authenticator():
                return model
        return None


def pluralize(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith("y") and lowered[-2:-1] not in ("a", "e", "i", "o", "u"):
        return name[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def _default_owner_key(name: str) -> str:
    return name[:1].lower() + name[1:]


def _reference(value: Any) -> Any:
    """Store references to other records by id."""

    if isinstance(value, Mapping) and "id" in value:
        return value["id"]
    return value


def _matches(row: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
    for key, expected in where.items():
        actual = row.get(key)
        expected = _reference(expected)
        if isinstance(expected, (list, tuple)):
            if actual not in expected:
                return False
        elif actual != expected and str(actual) != str(expected):
            return False
    return True


def _apply_options(rows: list[Record], options: Mapping[str, Any]) -> list[Record]:
    order = options.get("orderBy") or options.get("sort")
    if isinstance(order, str):
        order = {order: "asc"}
    if isinstance(order, Mapping):
        for key, direction in reversed(list(order.items())):
            descending = str(direction).lower() in ("desc", "-1", "descending")
            rows = sorted(rows, key=lambda row: (row.get(key) is None, row.get(key)), reverse=descending)
    offset = int(options.get("offset", options.get("skip", 0)) or 0)
    limit = options.get("limit")
    if offset:
        rows = rows[offset:]
    if limit is not None:
        rows = rows[: int(limit)]
    return rows


__all__ = [
    "ACCESS_TOKEN_PROPERTY",
    "PASSWORD_PROPERTY",
    "Association",
    "Model",
    "ModelOptions",
    "Models",
    "Property",
    "PropertyOptions",
    "authenticate",
    "automatic_owner",
    "has_many",
    "has_method",
    "pluralize",
    "prop",
]

from __future__ import annotations
import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pymongo

from .errors import UnsupportedOperationError

Document = Mapping[str, Any]
UpdateDescription = Mapping[str, Any]
Pipeline = Sequence[Mapping[str, Any]]
Update = Union[UpdateDescription, Pipeline]


class OperationKind(str, enum.Enum):
    """
    Kind tag of a bulk write operation. Values are the driver's bulkWrite keys.
    """
    INSERT_ONE = "insertOne"
    UPDATE_ONE = "updateOne"
    UPDATE_MANY = "updateMany"
    REPLACE_ONE = "replaceOne"
    DELETE_ONE = "deleteOne"
    DELETE_MANY = "deleteMany"
    OTHER = "other"


def is_pipeline(update: Any) -> bool:
    return isinstance(update, (list, tuple))


@dataclass(frozen=True)
class InsertOne:
    document: Document
    kind = OperationKind.INSERT_ONE

    def to_dict(self) -> Dict[str, Any]:
        return {self.kind.value: {"document": self.document}}

    def to_driver(self) -> pymongo.InsertOne:
        return pymongo.InsertOne(dict(self.document))


@dataclass(frozen=True)
class _UpdateOperation:
    filter: Document
    update: Update
    upsert: Optional[bool] = None
    collation: Optional[Mapping[str, Any]] = None
    array_filters: Optional[List[Mapping[str, Any]]] = None
    hint: Any = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"filter": self.filter, "update": self.update}
        _put_optional(body, "upsert", self.upsert)
        _put_optional(body, "collation", self.collation)
        _put_optional(body, "arrayFilters", self.array_filters)
        _put_optional(body, "hint", self.hint)
        return {self.kind.value: body}

    def _driver_kwargs(self) -> Dict[str, Any]:
        update = list(self.update) if is_pipeline(self.update) else dict(self.update)
        kwargs: Dict[str, Any] = {"filter": dict(self.filter), "update": update}
        _put_optional(kwargs, "upsert", self.upsert)
        _put_optional(kwargs, "collation", self.collation)
        _put_optional(kwargs, "array_filters", self.array_filters)
        _put_optional(kwargs, "hint", self.hint)
        return kwargs


@dataclass(frozen=True)
class UpdateOne(_UpdateOperation):
    kind = OperationKind.UPDATE_ONE

    def to_driver(self) -> pymongo.UpdateOne:
        return pymongo.UpdateOne(**self._driver_kwargs())


@dataclass(frozen=True)
class UpdateMany(_UpdateOperation):
    kind = OperationKind.UPDATE_MANY

    def to_driver(self) -> pymongo.UpdateMany:
        return pymongo.UpdateMany(**self._driver_kwargs())


@dataclass(frozen=True)
class ReplaceOne:
    filter: Document
    replacement: Document
    upsert: Optional[bool] = None
    collation: Optional[Mapping[str, Any]] = None
    hint: Any = None
    kind = OperationKind.REPLACE_ONE

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"filter": self.filter, "replacement": self.replacement}
        _put_optional(body, "upsert", self.upsert)
        _put_optional(body, "collation", self.collation)
        _put_optional(body, "hint", self.hint)
        return {self.kind.value: body}

    def to_driver(self) -> pymongo.ReplaceOne:
        kwargs: Dict[str, Any] = {}
        _put_optional(kwargs, "upsert", self.upsert)
        _put_optional(kwargs, "collation", self.collation)
        _put_optional(kwargs, "hint", self.hint)
        return pymongo.ReplaceOne(dict(self.filter), dict(self.replacement), **kwargs)


@dataclass(frozen=True)
class _DeleteOperation:
    filter: Document
    collation: Optional[Mapping[str, Any]] = None
    hint: Any = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"filter": self.filter}
        _put_optional(body, "collation", self.collation)
        _put_optional(body, "hint", self.hint)
        return {self.kind.value: body}


@dataclass(frozen=True)
class DeleteOne(_DeleteOperation):
    kind = OperationKind.DELETE_ONE

    def to_driver(self) -> pymongo.DeleteOne:
        return pymongo.DeleteOne(dict(self.filter), collation=self.collation, hint=self.hint)


@dataclass(frozen=True)
class DeleteMany(_DeleteOperation):
    kind = OperationKind.DELETE_MANY

    def to_driver(self) -> pymongo.DeleteMany:
        return pymongo.DeleteMany(dict(self.filter), collation=self.collation, hint=self.hint)


@dataclass(frozen=True)
class RawOperation:
    """
    An operation of a kind this package does not recognize. Carried as-is.
    """
    payload: Mapping[str, Any] = field(default_factory=dict)
    kind = OperationKind.OTHER

    def to_dict(self) -> Mapping[str, Any]:
        return self.payload

    def to_driver(self) -> Any:
        raise UnsupportedOperationError(
            f"unrecognized bulk operation {sorted(self.payload)!r} cannot be sent to the driver"
        )


WriteOperation = Union[InsertOne, UpdateOne, UpdateMany, ReplaceOne, DeleteOne, DeleteMany, RawOperation]


def _put_optional(body: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        body[key] = value


# Keys a driver-shaped body must carry for each kind
_REQUIRED_KEYS = {
    OperationKind.INSERT_ONE.value: ("document",),
    OperationKind.UPDATE_ONE.value: ("filter", "update"),
    OperationKind.UPDATE_MANY.value: ("filter", "update"),
    OperationKind.REPLACE_ONE.value: ("filter", "replacement"),
    OperationKind.DELETE_ONE.value: ("filter",),
    OperationKind.DELETE_MANY.value: ("filter",),
}

# Name of the body key each kind's timestamped payload lives under
PAYLOAD_KEYS = {
    OperationKind.INSERT_ONE: "document",
    OperationKind.UPDATE_ONE: "update",
    OperationKind.UPDATE_MANY: "update",
    OperationKind.REPLACE_ONE: "replacement",
}

DRIVER_REQUESTS = (
    pymongo.InsertOne,
    pymongo.UpdateOne,
    pymongo.UpdateMany,
    pymongo.ReplaceOne,
    pymongo.DeleteOne,
    pymongo.DeleteMany,
)


def operation_from_dict(raw: Mapping[str, Any]) -> WriteOperation:
    """
    Parse a driver-shaped bulk item such as {"updateOne": {"filter": ..., "update": ...}}.
    Unknown kinds and malformed bodies become a RawOperation.
    """
    if len(raw) != 1:
        return RawOperation(raw)
    key, body = next(iter(raw.items()))
    required = _REQUIRED_KEYS.get(key)
    if required is None or not isinstance(body, Mapping) or any(k not in body for k in required):
        return RawOperation(raw)
    if key == OperationKind.INSERT_ONE.value:
        return InsertOne(body["document"])
    if key in (OperationKind.UPDATE_ONE.value, OperationKind.UPDATE_MANY.value):
        cls = UpdateOne if key == OperationKind.UPDATE_ONE.value else UpdateMany
        return cls(
            filter=body["filter"],
            update=body["update"],
            upsert=body.get("upsert"),
            collation=body.get("collation"),
            array_filters=body.get("arrayFilters"),
            hint=body.get("hint"),
        )
    if key == OperationKind.REPLACE_ONE.value:
        return ReplaceOne(
            filter=body["filter"],
            replacement=body["replacement"],
            upsert=body.get("upsert"),
            collation=body.get("collation"),
            hint=body.get("hint"),
        )
    cls = DeleteOne if key == OperationKind.DELETE_ONE.value else DeleteMany
    return cls(filter=body["filter"], collation=body.get("collation"), hint=body.get("hint"))


def operation_from_request(request: Any) -> WriteOperation:
    """
    Read a pymongo request object (pymongo.InsertOne, pymongo.UpdateOne, ...) into
    the matching operation. Anything else becomes a RawOperation.
    """
    if isinstance(request, pymongo.InsertOne):
        return InsertOne(request._doc)
    if isinstance(request, (pymongo.UpdateOne, pymongo.UpdateMany)):
        cls = UpdateOne if isinstance(request, pymongo.UpdateOne) else UpdateMany
        return cls(
            filter=request._filter,
            update=request._doc,
            upsert=request._upsert,
            collation=request._collation,
            array_filters=request._array_filters,
            hint=request._hint,
        )
    if isinstance(request, pymongo.ReplaceOne):
        return ReplaceOne(
            filter=request._filter,
            replacement=request._doc,
            upsert=request._upsert,
            collation=request._collation,
            hint=request._hint,
        )
    if isinstance(request, (pymongo.DeleteOne, pymongo.DeleteMany)):
        cls = DeleteOne if isinstance(request, pymongo.DeleteOne) else DeleteMany
        return cls(filter=request._filter, collation=request._collation, hint=request._hint)
    return RawOperation({"request": request})


def with_payload(operation: Any, kind: OperationKind, payload: Any) -> Any:
    """
    Copy of a driver-shaped mapping or pymongo request with its timestamped payload
    swapped in. Every other key or attribute the caller set is kept.
    """
    if isinstance(operation, Mapping):
        body = dict(operation[kind.value])
        body[PAYLOAD_KEYS[kind]] = payload
        return {kind.value: body}
    out = copy.copy(operation)
    # pymongo keeps the document/update/replacement of every request in _doc
    out._doc = payload
    return out


def to_request(operation: Any) -> Any:
    """
    The pymongo request to hand to Collection.bulk_write for a (timestamped) operation.
    """
    if isinstance(operation, DRIVER_REQUESTS):
        return operation
    if isinstance(operation, Mapping):
        operation = operation_from_dict(operation)
    if not isinstance(getattr(operation, "kind", None), OperationKind):
        raise UnsupportedOperationError(f"{type(operation).__name__} is not a bulk write operation")
    return operation.to_driver()

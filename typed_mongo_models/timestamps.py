from __future__ import annotations
import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, overload

from .operations import (
    DRIVER_REQUESTS,
    PAYLOAD_KEYS,
    InsertOne,
    OperationKind,
    UpdateDescription,
    WriteOperation,
    is_pipeline,
    operation_from_dict,
    operation_from_request,
    with_payload,
)
from .utils import Clock, utcnow

log = logging.getLogger(__name__)

SET = "$set"
UNSET = "$unset"
SET_ON_INSERT = "$setOnInsert"
CURRENT_DATE = "$currentDate"


@dataclasses.dataclass(frozen=True)
class TimestampConfig:
    """
    Names of the reserved timestamp fields. A name of None switches that half off,
    so a schema may track only creation or only modification time.
    """
    created_at: Optional[str] = "createdAt"
    updated_at: Optional[str] = "updatedAt"

    @classmethod
    def disabled(cls) -> "TimestampConfig":
        return cls(created_at=None, updated_at=None)

    @property
    def enabled(self) -> bool:
        return self.created_at is not None or self.updated_at is not None


DEFAULT_TIMESTAMPS = TimestampConfig()


def _claimed(update: UpdateDescription, field: str) -> bool:
    # Key presence decides: {"$unset": {"updatedAt": ""}} still claims the field.
    for channel in (SET, UNSET):
        targets = update.get(channel)
        if isinstance(targets, Mapping) and field in targets:
            return True
    return False


def _augment(update: UpdateDescription, channel: str, field: Optional[str], value: Any) -> Dict[str, Any]:
    """
    New mapping for `channel`: the caller's entries plus `field: value`,
    unless the field is already set or removed by the update, or the caller
    already put it in this channel.
    """
    merged = dict(update.get(channel) or {})
    if field is not None and field not in merged and not _claimed(update, field):
        merged[field] = value
    return merged


def _merge_channels(update: UpdateDescription, channels: Mapping[str, Dict[str, Any]]) -> Dict[str, Any]:
    out = dict(update)
    for name, value in channels.items():
        if value:
            out[name] = value
    return out


class Timestamper:
    """
    Normalizes write descriptions so they carry creation/modification timestamps.

    Inputs are never mutated: every call returns a new description, or the
    caller's own object when there is nothing to add (pipeline updates,
    deletes, unknown operation kinds). A timestamp the caller wrote anywhere
    in the update, including $setOnInsert or $currentDate, is kept as written.
    """

    def __init__(self, timestamps: Optional[TimestampConfig] = None, clock: Optional[Clock] = None) -> None:
        self.timestamps = DEFAULT_TIMESTAMPS if timestamps is None else timestamps
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    # ----- Single updates -----

    def update_filter(self, update: Any) -> Any:
        if is_pipeline(update):
            log.debug("pipeline update left untouched")
            return update
        current_date = _augment(update, CURRENT_DATE, self.timestamps.updated_at, True)
        return _merge_channels(update, {CURRENT_DATE: current_date})

    # ----- Documents -----

    def stamp_document(self, document: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        {createdAt: now, updatedAt: now, **document}; keys the caller set win.
        """
        if now is None:
            now = self.now()
        out: Dict[str, Any] = {}
        if self.timestamps.created_at is not None:
            out[self.timestamps.created_at] = now
        if self.timestamps.updated_at is not None:
            out[self.timestamps.updated_at] = now
        out.update(document)
        return out

    # ----- Bulk operations -----

    @overload
    def bulk_write_operation(self, operation: WriteOperation) -> WriteOperation: ...

    @overload
    def bulk_write_operation(self, operation: Mapping[str, Any]) -> Mapping[str, Any]: ...

    def bulk_write_operation(self, operation):
        """
        Accepts an operation from this package, a driver-shaped mapping
        ({"updateOne": {...}}) or a pymongo request, and returns the same shape.
        """
        if isinstance(operation, Mapping):
            parsed = operation_from_dict(operation)
        elif isinstance(operation, DRIVER_REQUESTS):
            parsed = operation_from_request(operation)
        else:
            return self._stamp_operation(operation)
        stamped = self._stamp_operation(parsed)
        if stamped is parsed:
            return operation
        return with_payload(operation, stamped.kind, getattr(stamped, PAYLOAD_KEYS[stamped.kind]))

    def batch(self, operations: Iterable[Any]) -> List[Any]:
        return [self.bulk_write_operation(op) for op in operations]

    def _stamp_operation(self, operation: WriteOperation) -> WriteOperation:
        kind = getattr(operation, "kind", None)
        if not isinstance(kind, OperationKind):
            log.debug("%s is not a write operation, passed through", type(operation).__name__)
            return operation
        if kind is OperationKind.INSERT_ONE:
            return InsertOne(self.stamp_document(operation.document))
        if kind is OperationKind.REPLACE_ONE:
            return dataclasses.replace(operation, replacement=self.stamp_document(operation.replacement))
        if kind in (OperationKind.UPDATE_ONE, OperationKind.UPDATE_MANY):
            update = operation.update
            if is_pipeline(update):
                log.debug("pipeline %s left untouched", kind.value)
                return operation
            channels = {
                CURRENT_DATE: _augment(update, CURRENT_DATE, self.timestamps.updated_at, True),
                SET_ON_INSERT: _augment(update, SET_ON_INSERT, self.timestamps.created_at, self.now()),
            }
            return dataclasses.replace(operation, update=_merge_channels(update, channels))
        if kind is OperationKind.OTHER:
            log.debug("unrecognized bulk operation passed through: %s", sorted(operation.to_dict()))
        return operation


def timestamp_update_filter(update: Any, *, timestamps: Optional[TimestampConfig] = None,
                            clock: Optional[Clock] = None) -> Any:
    return Timestamper(timestamps, clock).update_filter(update)


def timestamp_bulk_write_operation(operation: Any, *, timestamps: Optional[TimestampConfig] = None,
                                   clock: Optional[Clock] = None) -> Any:
    return Timestamper(timestamps, clock).bulk_write_operation(operation)

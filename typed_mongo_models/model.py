from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from .errors import ConfigError
from .operations import InsertOne, ReplaceOne, UpdateOne, is_pipeline, to_request
from .schema import Schema, as_schema
from .timestamps import SET_ON_INSERT, Timestamper
from .utils import Clock, get_ids

log = logging.getLogger(__name__)

_OPTION_KEYS = {"max_time_ms", "ordered"}


def _touched_fields(update: Mapping[str, Any]) -> Set[str]:
    touched: Set[str] = set()
    for targets in update.values():
        if isinstance(targets, Mapping):
            touched.update(targets.keys())
    return touched


class Model:
    """
    A pymongo collection bound to a schema. Every write goes through the
    Timestamper before it reaches the driver.
    """

    def __init__(
        self,
        collection: Collection,
        schema: Union[Schema, Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.collection = collection
        self.schema = as_schema(schema)
        self._options = dict(options or {})
        unknown = set(self._options) - _OPTION_KEYS
        if unknown:
            raise ConfigError(f"unknown model options: {sorted(unknown)}")
        max_time = self._options.get("max_time_ms")
        if max_time is not None and (not isinstance(max_time, int) or max_time <= 0):
            raise ConfigError("max_time_ms must be a positive int")
        self._timestamper = Timestamper(self.schema.timestamps, clock)

    @property
    def timestamper(self) -> Timestamper:
        return self._timestamper

    def _read_kwargs(self, kwargs: Dict[str, Any], key: str = "max_time_ms") -> Dict[str, Any]:
        # Cursors take max_time_ms, count_documents takes the raw command option maxTimeMS
        max_time = self._options.get("max_time_ms")
        if max_time is not None:
            kwargs.setdefault(key, max_time)
        return kwargs

    def _prepare_insert(self, doc: Mapping[str, Any]) -> Dict[str, Any]:
        op = self._timestamper.bulk_write_operation(InsertOne(self.schema.apply_defaults(doc)))
        return dict(op.document)

    # ----- Writes -----

    def insert_one(self, doc: Mapping[str, Any], **kwargs: Any) -> Dict[str, Any]:
        """
        Insert one document and return it as stored (with _id and timestamps).
        """
        prepared = self._prepare_insert(doc)
        result = self.collection.insert_one(prepared, **kwargs)
        prepared["_id"] = result.inserted_id
        return prepared

    def insert_many(self, docs: Iterable[Mapping[str, Any]], **kwargs: Any) -> List[Dict[str, Any]]:
        prepared = [self._prepare_insert(d) for d in docs]
        if not prepared:
            return []
        result = self.collection.insert_many(prepared, **kwargs)
        for doc, inserted_id in zip(prepared, result.inserted_ids):
            doc["_id"] = inserted_id
        return prepared

    def update_one(self, filter: Mapping[str, Any], update: Any, **kwargs: Any):
        return self.collection.update_one(filter, self._timestamper.update_filter(update), **kwargs)

    def update_many(self, filter: Mapping[str, Any], update: Any, **kwargs: Any):
        return self.collection.update_many(filter, self._timestamper.update_filter(update), **kwargs)

    def replace_one(self, filter: Mapping[str, Any], replacement: Mapping[str, Any], upsert: bool = False, **kwargs: Any):
        op = self._timestamper.bulk_write_operation(ReplaceOne(filter, replacement, upsert=upsert))
        return self.collection.replace_one(op.filter, dict(op.replacement), upsert=upsert, **kwargs)

    def upsert(self, filter: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any) -> Optional[Dict[str, Any]]:
        """
        Update the matching document or create it, returning the document after the write.
        Declared defaults the update does not touch are written only on creation.
        """
        if not is_pipeline(update):
            update = self._with_insert_defaults(update)
        op = self._timestamper.bulk_write_operation(UpdateOne(filter, update, upsert=True))
        return self.collection.find_one_and_update(
            op.filter,
            op.update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
            **kwargs,
        )

    def _with_insert_defaults(self, update: Mapping[str, Any]) -> Mapping[str, Any]:
        touched = _touched_fields(update)
        reserved = {self.schema.timestamps.created_at, self.schema.timestamps.updated_at}
        on_insert = dict(update.get(SET_ON_INSERT) or {})
        for name, value in self.schema.apply_defaults({}).items():
            if name in reserved or name in on_insert:
                continue
            if any(t == name or t.startswith(name + ".") for t in touched):
                continue
            on_insert[name] = value
        if not on_insert:
            return update
        out = dict(update)
        out[SET_ON_INSERT] = on_insert
        return out

    def bulk_write(self, operations: Iterable[Any], ordered: Optional[bool] = None, **kwargs: Any):
        ops = list(operations)
        if not ops:
            log.debug("%s: empty bulk write skipped", self.collection.name)
            return None
        requests = [to_request(op) for op in self._timestamper.batch(ops)]
        if ordered is None:
            ordered = self._options.get("ordered", True)
        log.info("%s: bulk write of %d operations (ordered=%s)", self.collection.name, len(requests), ordered)
        return self.collection.bulk_write(requests, ordered=ordered, **kwargs)

    def delete_one(self, filter: Mapping[str, Any], **kwargs: Any):
        return self.collection.delete_one(filter, **kwargs)

    def delete_many(self, filter: Mapping[str, Any], **kwargs: Any):
        return self.collection.delete_many(filter, **kwargs)

    # ----- Reads -----

    def find(self, filter: Optional[Mapping[str, Any]] = None, projection: Any = None, **kwargs: Any) -> List[Dict[str, Any]]:
        return list(self.collection.find(filter or {}, projection, **self._read_kwargs(kwargs)))

    def find_one(self, filter: Optional[Mapping[str, Any]] = None, projection: Any = None, **kwargs: Any) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(filter or {}, projection, **self._read_kwargs(kwargs))

    def find_by_id(self, id: Union[str, ObjectId], projection: Any = None, **kwargs: Any) -> Optional[Dict[str, Any]]:
        (oid,) = get_ids([id])
        return self.find_one({"_id": oid}, projection, **kwargs)

    def find_by_ids(self, ids: Iterable[Union[str, ObjectId]], projection: Any = None, **kwargs: Any) -> List[Dict[str, Any]]:
        return self.find({"_id": {"$in": get_ids(ids)}}, projection, **kwargs)

    def count_documents(self, filter: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> int:
        return self.collection.count_documents(filter or {}, **self._read_kwargs(kwargs, "maxTimeMS"))

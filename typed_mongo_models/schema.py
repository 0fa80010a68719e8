from __future__ import annotations
import copy
import enum
from typing import Any, Dict, List, Mapping, Union

from .errors import SchemaError
from .timestamps import TimestampConfig

# Field type name -> BSON type used in the server-side $jsonSchema validator
BSON_TYPES = {
    "str": "string",
    "int": "int",
    "float": "double",
    "bool": "bool",
    "datetime": "date",
    "objectId": "objectId",
    "list": "array",
    "object": "object",
    "any": None,
}


class ValidationAction(str, enum.Enum):
    ERROR = "error"
    WARN = "warn"


class ValidationLevel(str, enum.Enum):
    MODERATE = "moderate"
    OFF = "off"
    STRICT = "strict"


class Schema:
    """
    Collection schema declared as a dict of field specs, e.g.

        {
            "name":      {"type": "str", "mandatory": True},
            "age":       {"type": "int", "default": 0},
            "tags":      {"type": "list", "items": {"type": "str"}},
            "createdAt": {"type": "datetime", "mandatory": True},
        }

    Timestamp tracking follows the declared fields unless `timestamps` says otherwise:
    a `createdAt` / `updatedAt` field of type datetime switches that half on.
    """

    def __init__(
        self,
        fields: Dict[str, Any],
        *,
        timestamps: Union[bool, TimestampConfig, None] = None,
        validation_action: ValidationAction = ValidationAction.ERROR,
        validation_level: ValidationLevel = ValidationLevel.STRICT,
    ) -> None:
        self._fields = dict(fields)
        for name, spec in self._fields.items():
            self._check_spec(name, spec)
        self.validation_action = ValidationAction(validation_action)
        self.validation_level = ValidationLevel(validation_level)
        self.timestamps = self._resolve_timestamps(timestamps)

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    @property
    def defaults(self) -> Dict[str, Any]:
        return {k: spec["default"] for k, spec in self._fields.items() if "default" in spec}

    def _check_spec(self, path: str, spec: Any) -> None:
        if not isinstance(spec, Mapping):
            raise SchemaError(f"field '{path}': spec must be a dict")
        tp = spec.get("type")
        if tp not in BSON_TYPES:
            raise SchemaError(f"field '{path}': unknown type {tp!r}")
        if tp == "object":
            for sub, sub_spec in (spec.get("fields") or {}).items():
                self._check_spec(f"{path}.{sub}", sub_spec)
        if tp == "list" and "items" in spec:
            self._check_spec(f"{path}[]", spec["items"])

    def _resolve_timestamps(self, timestamps: Union[bool, TimestampConfig, None]) -> TimestampConfig:
        if isinstance(timestamps, TimestampConfig):
            cfg = timestamps
        elif timestamps is True:
            cfg = TimestampConfig()
        elif timestamps is False:
            return TimestampConfig.disabled()
        else:
            defaults = TimestampConfig()
            cfg = TimestampConfig(
                created_at=defaults.created_at if defaults.created_at in self._fields else None,
                updated_at=defaults.updated_at if defaults.updated_at in self._fields else None,
            )
        for name in (cfg.created_at, cfg.updated_at):
            if name is None or name not in self._fields:
                continue
            if self._fields[name].get("type") != "datetime":
                raise SchemaError(f"timestamp field '{name}' must be declared as datetime")
        return cfg

    def apply_defaults(self, doc: Mapping[str, Any]) -> Dict[str, Any]:
        """
        New document with declared defaults filled in for missing top-level keys.
        Callable defaults are invoked per document, other defaults are deep-copied
        so no two documents share a mutable default.
        """
        out: Dict[str, Any] = {}
        for name, value in self.defaults.items():
            if name not in doc:
                out[name] = value() if callable(value) else copy.deepcopy(value)
        out.update(doc)
        return out

    # ----- Server-side validator -----

    def json_schema(self) -> Dict[str, Any]:
        return self._object_schema(self._fields, top_level=True)

    def _object_schema(self, fields: Mapping[str, Any], top_level: bool = False) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        if top_level:
            properties["_id"] = {"bsonType": "objectId"}
            required.append("_id")
        for name, spec in fields.items():
            properties[name] = self._field_schema(spec)
            stamped = top_level and name in (self.timestamps.created_at, self.timestamps.updated_at)
            if spec.get("mandatory") or stamped:
                required.append(name)
        if top_level:
            for name in (self.timestamps.created_at, self.timestamps.updated_at):
                if name is not None and name not in properties:
                    properties[name] = {"bsonType": "date"}
                    required.append(name)
        out: Dict[str, Any] = {"bsonType": "object", "properties": properties, "additionalProperties": False}
        if required:
            out["required"] = sorted(required)
        return out

    def _field_schema(self, spec: Mapping[str, Any]) -> Dict[str, Any]:
        tp = spec["type"]
        if tp == "object" and spec.get("fields"):
            return self._object_schema(spec["fields"])
        out: Dict[str, Any] = {}
        if BSON_TYPES[tp] is not None:
            out["bsonType"] = BSON_TYPES[tp]
        if tp == "list" and "items" in spec:
            out["items"] = self._field_schema(spec["items"])
        if "enum" in spec:
            out["enum"] = list(spec["enum"])
        return out

    def collection_options(self) -> Dict[str, Any]:
        return {
            "validator": {"$jsonSchema": self.json_schema()},
            "validationAction": self.validation_action.value,
            "validationLevel": self.validation_level.value,
        }


def as_schema(schema: Union[Schema, Dict[str, Any]]) -> Schema:
    if isinstance(schema, Schema):
        return schema
    return Schema(schema)

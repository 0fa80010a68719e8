from .errors import (
    ConfigError,
    InvalidIdError,
    ModelError,
    SchemaError,
    UnsupportedOperationError,
)
from .model import Model
from .operations import (
    DeleteMany,
    DeleteOne,
    InsertOne,
    OperationKind,
    RawOperation,
    ReplaceOne,
    UpdateMany,
    UpdateOne,
    operation_from_dict,
    operation_from_request,
)
from .schema import Schema, ValidationAction, ValidationLevel
from .timestamps import (
    TimestampConfig,
    Timestamper,
    timestamp_bulk_write_operation,
    timestamp_update_filter,
)
from .utils import get_ids, utcnow

__all__ = [
    "ConfigError",
    "DeleteMany",
    "DeleteOne",
    "InsertOne",
    "InvalidIdError",
    "Model",
    "ModelError",
    "OperationKind",
    "RawOperation",
    "ReplaceOne",
    "Schema",
    "SchemaError",
    "TimestampConfig",
    "Timestamper",
    "UnsupportedOperationError",
    "UpdateMany",
    "UpdateOne",
    "ValidationAction",
    "ValidationLevel",
    "get_ids",
    "operation_from_dict",
    "operation_from_request",
    "timestamp_bulk_write_operation",
    "timestamp_update_filter",
    "utcnow",
]

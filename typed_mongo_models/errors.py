from __future__ import annotations


class ModelError(Exception):
    """Base class for typed_mongo_models errors."""


class ConfigError(ModelError):
    """Raised when a model is constructed with invalid options."""


class SchemaError(ModelError):
    """Raised when a schema declaration is malformed."""


class InvalidIdError(ModelError):
    """Raised when a value cannot be coerced to an ObjectId."""


class UnsupportedOperationError(ModelError):
    """Raised when a write operation cannot be handed to the driver."""

#!/usr/bin/env python3
# Example usage of typed_mongo_models
# Shows what each write form looks like after timestamp normalization; no server is contacted.

from rich.console import Console
from rich.pretty import Pretty

from typed_mongo_models import (
    DeleteOne,
    InsertOne,
    ReplaceOne,
    Schema,
    Timestamper,
    UpdateMany,
    UpdateOne,
)

_console = Console(force_terminal=True, color_system="standard")

# A user with name (str), age (int) and both timestamp fields declared
SCHEMA = Schema({
    "name": {"type": "str", "mandatory": True},
    "age": {"type": "int", "default": 0},
    "createdAt": {"type": "datetime", "mandatory": True},
    "updatedAt": {"type": "datetime", "mandatory": True},
})


def show(title, value) -> None:
    _console.rule(title)
    _console.print(Pretty(value))


def main() -> None:
    ts = Timestamper(SCHEMA.timestamps)

    show("update filter", ts.update_filter({"$set": {"name": "Alice"}}))
    show("update filter, updatedAt set by caller", ts.update_filter({"$unset": {"updatedAt": ""}}))

    batch = [
        InsertOne({"name": "Bob"}),
        UpdateOne({"name": "Carol"}, {"$inc": {"age": 1}}, upsert=True),
        UpdateMany({}, [{"$set": {"age": {"$add": ["$age", 1]}}}]),
        ReplaceOne({"name": "Dave"}, {"name": "Dave", "age": 40}),
        DeleteOne({"name": "Eve"}),
        {"insertOne": {"document": {"name": "Frank"}}},
    ]
    for op in ts.batch(batch):
        show(type(op).__name__, op)

    show("collection options", SCHEMA.collection_options())


if __name__ == "__main__":
    main()

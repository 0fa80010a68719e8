import pymongo
import pytest

from typed_mongo_models import (
    DeleteMany,
    DeleteOne,
    InsertOne,
    OperationKind,
    RawOperation,
    ReplaceOne,
    UnsupportedOperationError,
    UpdateMany,
    UpdateOne,
    operation_from_dict,
    operation_from_request,
)


def test_from_dict_kinds():
    assert operation_from_dict({"insertOne": {"document": {"a": 1}}}) == InsertOne({"a": 1})
    assert operation_from_dict({"deleteOne": {"filter": {"a": 1}}}) == DeleteOne({"a": 1})
    assert operation_from_dict({"deleteMany": {"filter": {}}}) == DeleteMany({})
    op = operation_from_dict({
        "updateOne": {
            "filter": {"_id": 1},
            "update": {"$set": {"a": 1}},
            "upsert": True,
            "arrayFilters": [{"x": 1}],
        }
    })
    assert op == UpdateOne({"_id": 1}, {"$set": {"a": 1}}, upsert=True, array_filters=[{"x": 1}])
    assert op.kind is OperationKind.UPDATE_ONE
    rep = operation_from_dict({"replaceOne": {"filter": {}, "replacement": {"a": 2}}})
    assert rep == ReplaceOne({}, {"a": 2})


def test_from_dict_unknown_kind_is_raw():
    raw = {"insertMany": {"documents": []}}
    op = operation_from_dict(raw)
    assert isinstance(op, RawOperation)
    assert op.kind is OperationKind.OTHER
    assert op.to_dict() is raw
    two_keys = {"insertOne": {"document": {}}, "deleteOne": {"filter": {}}}
    assert isinstance(operation_from_dict(two_keys), RawOperation)


def test_to_dict_omits_unset_options():
    assert UpdateMany({}, {"$set": {"a": 1}}).to_dict() == {
        "updateMany": {"filter": {}, "update": {"$set": {"a": 1}}}
    }
    assert ReplaceOne({"_id": 1}, {"a": 1}, upsert=False).to_dict() == {
        "replaceOne": {"filter": {"_id": 1}, "replacement": {"a": 1}, "upsert": False}
    }


def test_to_driver_requests():
    assert InsertOne({"a": 1}).to_driver() == pymongo.InsertOne({"a": 1})
    assert UpdateOne({"_id": 1}, {"$set": {"a": 1}}, upsert=True).to_driver() == pymongo.UpdateOne(
        {"_id": 1}, {"$set": {"a": 1}}, upsert=True
    )
    assert UpdateMany({}, [{"$set": {"a": 1}}]).to_driver() == pymongo.UpdateMany({}, [{"$set": {"a": 1}}])
    assert ReplaceOne({"_id": 1}, {"a": 2}).to_driver() == pymongo.ReplaceOne({"_id": 1}, {"a": 2})
    assert DeleteOne({"_id": 1}).to_driver() == pymongo.DeleteOne({"_id": 1})
    assert DeleteMany({}).to_driver() == pymongo.DeleteMany({})


def test_raw_operation_cannot_reach_driver():
    with pytest.raises(UnsupportedOperationError):
        RawOperation({"futureOp": {}}).to_driver()


def test_operations_are_immutable():
    op = InsertOne({"a": 1})
    with pytest.raises(AttributeError):
        op.document = {}


def test_from_dict_malformed_bodies_are_raw():
    for raw in (
        {"updateOne": {"update": {"$set": {"a": 1}}}},
        {"insertOne": {}},
        {"replaceOne": {"filter": {}}},
        {"deleteOne": ["not", "a", "body"]},
    ):
        op = operation_from_dict(raw)
        assert isinstance(op, RawOperation)
        assert op.to_dict() is raw


def test_from_request():
    assert operation_from_request(pymongo.InsertOne({"a": 1})) == InsertOne({"a": 1})
    op = operation_from_request(pymongo.UpdateMany({"a": 1}, {"$set": {"b": 2}}, upsert=True))
    assert isinstance(op, UpdateMany)
    assert op.filter == {"a": 1}
    assert op.update == {"$set": {"b": 2}}
    assert op.upsert is True
    rep = operation_from_request(pymongo.ReplaceOne({"_id": 1}, {"a": 2}))
    assert isinstance(rep, ReplaceOne)
    assert rep.replacement == {"a": 2}
    assert operation_from_request(pymongo.DeleteMany({"a": 1})).kind is OperationKind.DELETE_MANY
    assert isinstance(operation_from_request("nope"), RawOperation)

from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Union

from bson import ObjectId
from bson.errors import InvalidId

from .errors import InvalidIdError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """
    Current UTC time truncated to milliseconds, the precision BSON dates keep.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def get_ids(ids: Iterable[Union[str, ObjectId]]) -> List[ObjectId]:
    out: List[ObjectId] = []
    for value in ids:
        try:
            out.append(ObjectId(value))
        except (InvalidId, TypeError) as e:
            raise InvalidIdError(f"not a valid ObjectId: {value!r}") from e
    return out

from typing import Any

import orjson
from fastapi.encoders import jsonable_encoder


def dumps(obj: Any) -> str:
    """Serialize ``obj`` to a compact JSON string with datetime support."""
    return orjson.dumps(jsonable_encoder(obj), option=orjson.OPT_NON_STR_KEYS).decode("utf-8")


def canonical_dumps(obj: Any) -> str:
    """Like :func:`dumps` but with sorted keys, for stable cache keys."""
    return orjson.dumps(
        jsonable_encoder(obj),
        option=orjson.OPT_NON_STR_KEYS | orjson.OPT_SORT_KEYS,
    ).decode("utf-8")


def loads(data: Any) -> Any:
    return orjson.loads(data)

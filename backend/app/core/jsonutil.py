"""
JSON helpers — one place to parse and stringify JSON.

    stringify_json({"at": datetime.now()})      # datetimes → ISO 8601
    parse_json('{"status": "ok"}', model=ComponentStatus)  # validated pydantic model
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    return str(obj)


def parse_json(data: str, model: Optional[Type[M]] = None) -> Union[Any, M]:
    """Parse a JSON string, optionally validating it into ``model``."""
    return parse_json_from_bytes(data.encode("utf-8"), model)


def stringify_json(data: Any) -> str:
    return stringify_json_to_bytes(data).decode("utf-8")


def parse_json_from_bytes(data: bytes, model: Optional[Type[M]] = None) -> Union[Any, M]:
    if model is not None:
        return model.model_validate_json(data)
    return json.loads(data)


def stringify_json_to_bytes(data: Any) -> bytes:
    return json.dumps(data, default=_default, ensure_ascii=False).encode("utf-8")

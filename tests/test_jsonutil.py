"""
Tests for the JSON parse / stringify helpers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel, ValidationError

from backend.app.core.jsonutil import (
    parse_json,
    parse_json_from_bytes,
    stringify_json,
    stringify_json_to_bytes,
)


class ComponentStatus(BaseModel):
    name: str
    healthy: bool


@dataclass
class Point:
    x: int
    y: int


class TestParse:
    def test_object(self):
        assert parse_json('{"a": 1, "b": [true, null]}') == {"a": 1, "b": [True, None]}

    def test_bytes(self):
        assert parse_json_from_bytes(b'["x", 2.5]') == ["x", 2.5]

    def test_into_model(self):
        status = parse_json('{"name": "redis", "healthy": true}', model=ComponentStatus)
        assert status == ComponentStatus(name="redis", healthy=True)

    def test_model_validation_error(self):
        with pytest.raises(ValidationError):
            parse_json('{"name": "redis"}', model=ComponentStatus)

    def test_malformed(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json("{not json")


class TestStringify:
    def test_plain(self):
        assert json.loads(stringify_json({"a": [1, 2]})) == {"a": [1, 2]}

    def test_bytes(self):
        assert stringify_json_to_bytes({"k": "v"}) == b'{"k": "v"}'

    def test_unicode_kept(self):
        assert "µs" in stringify_json({"unit": "µs"})

    def test_rich_types(self):
        out = json.loads(stringify_json({
            "model": ComponentStatus(name="db", healthy=False),
            "point": Point(1, 2),
            "at": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            "wait": timedelta(seconds=1.5),
        }))
        assert out["model"] == {"name": "db", "healthy": False}
        assert out["point"] == {"x": 1, "y": 2}
        assert out["at"] == "2024-01-02T03:04:05+00:00"
        assert out["wait"] == 1.5

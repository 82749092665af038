"""
Unit tests for JSON serialization utility.

Covers the sanitiser used for relayed events, SSE frames and audit entries.
"""
import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from core.utils.json_serialization import dumps_compact, dumps_pretty, sanitize_for_json


class _Status(Enum):
    RUNNING = "running"


class TestJsonSerialization:
    """Test JSON serialization utility."""

    def test_sanitize_datetime(self):
        """Test datetime conversion to ISO string."""
        obj = {"created_at": datetime(2025, 1, 15, 10, 30, 0)}
        result = sanitize_for_json(obj)

        assert result == {"created_at": "2025-01-15T10:30:00"}
        json.dumps(result)

    def test_sanitize_uuid_decimal_and_enum(self):
        """Scalars the json module rejects are converted."""
        obj = {
            "id": UUID("12345678-1234-5678-1234-567812345678"),
            "cost": Decimal("1.5"),
            "status": _Status.RUNNING,
        }

        assert sanitize_for_json(obj) == {
            "id": "12345678-1234-5678-1234-567812345678",
            "cost": 1.5,
            "status": "running",
        }

    def test_sanitize_exception(self):
        """Exceptions become a small error object."""
        result = sanitize_for_json({"failure": RuntimeError("boom")})

        assert result == {"failure": {"error": "RuntimeError", "message": "boom"}}

    def test_circular_reference_is_broken(self):
        """Self-referencing containers do not recurse forever."""
        data: dict = {"name": "loop"}
        data["self"] = data

        result = sanitize_for_json(data)

        assert result["self"].startswith("<circular_ref")
        json.dumps(result)

    def test_dumps_compact_is_single_line(self):
        """SSE data must fit on one line."""
        text = dumps_compact({"message": "multi\nline", "n": 1, "word": "café"})

        assert "\n" not in text
        assert text == '{"message":"multi\\nline","n":1,"word":"café"}'

    def test_dumps_pretty_indents_and_passes_strings_through(self):
        """Audit entries are indented; raw strings are written as-is."""
        assert dumps_pretty({"a": 1}) == '{\n  "a": 1\n}'
        assert dumps_pretty("already text") == "already text"

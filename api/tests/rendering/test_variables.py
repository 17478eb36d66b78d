"""Tests for variable value map construction."""

from types import SimpleNamespace

import pytest

from rendering.variables import build_variable_values, values_for_recipient

pytestmark = pytest.mark.unit


class TestBuildVariableValues:
    def test_always_includes_identity(self):
        values = build_variable_values("Jane Doe", "jane@example.com")
        assert values == {
            "recipient_name": "Jane Doe",
            "recipient_email": "jane@example.com",
        }

    def test_scalars_are_stringified(self):
        values = build_variable_values(
            "Jane",
            "jane@example.com",
            {"score": 97, "ratio": 0.5, "passed": True, "course": "Cloud"},
        )
        assert values["score"] == "97"
        assert values["ratio"] == "0.5"
        assert values["passed"] == "True"
        assert values["course"] == "Cloud"

    def test_null_fields_stay_null(self):
        values = build_variable_values(None, None, {"mentor": None})
        assert values["recipient_name"] is None
        assert values["recipient_email"] is None
        assert "mentor" in values
        assert values["mentor"] is None

    def test_non_scalar_fields_are_dropped(self):
        values = build_variable_values(
            "Jane",
            "jane@example.com",
            {"tags": ["a", "b"], "address": {"city": "Oslo"}, "grade": "A"},
        )
        assert "tags" not in values
        assert "address" not in values
        assert values["grade"] == "A"

    def test_non_mapping_recipient_data_is_ignored(self):
        values = build_variable_values("Jane", "jane@example.com", ["oops"])  # type: ignore[arg-type]
        assert set(values) == {"recipient_name", "recipient_email"}

    def test_recipient_data_can_override_identity_keys(self):
        values = build_variable_values(
            "Jane", "jane@example.com", {"recipient_name": "Dr. Jane"}
        )
        assert values["recipient_name"] == "Dr. Jane"


class TestValuesForRecipient:
    def test_accepts_mapping(self):
        values = values_for_recipient(
            {
                "recipient_name": "Ada",
                "recipient_email": "ada@example.com",
                "recipient_data": {"cohort": 3},
            }
        )
        assert values["cohort"] == "3"

    def test_accepts_object_with_attributes(self):
        recipient = SimpleNamespace(
            recipient_name="Ada", recipient_email="ada@example.com"
        )
        values = values_for_recipient(recipient)
        assert values == {"recipient_name": "Ada", "recipient_email": "ada@example.com"}

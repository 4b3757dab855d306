"""Tests for src.core.context_classifier — cosmetic task categories."""

import pytest

from src.core.context_classifier import CONTEXTS, DEFAULT_CONTEXT, classify


class TestClassify:
    @pytest.mark.parametrize("task, expected", [
        ("call mom", "family"),
        ("Zoom with the design team", "meeting"),
        ("dentist checkup", "health"),
        ("take vitamin", "health"),
        ("gym session", "workout"),
        ("submit the report", "work"),
        ("buy groceries", "shopping"),
    ])
    def test_categories(self, task, expected):
        assert classify(task).name == expected

    def test_first_match_wins_in_table_order(self):
        # "mom" (family) and "doctor appointment" (health) both match
        assert classify("call mom about doctor appointment").name == "family"

    def test_workout_before_work(self):
        assert classify("workout").name == "workout"

    def test_case_insensitive(self):
        assert classify("CALL DAD").name == "family"

    def test_default_label(self):
        label = classify("water the plants")
        assert label is DEFAULT_CONTEXT
        assert label.emoji == "⭐"

    def test_table_order(self):
        assert [c.name for c in CONTEXTS] == [
            "family", "meeting", "health", "workout", "work", "shopping",
        ]

    def test_deterministic(self):
        assert classify("meeting prep") is classify("meeting prep")

"""Tests for field-level conflict detection on organization edits."""

import pytest

from employer_ratings.scoring.conflicts import classify_field, detect_conflicts

CURRENT = {
    "name": "Acme Formwork Pty Ltd",
    "abn": "51824753556",
    "phone": "03 9000 0000",
    "suburb": None,
    "estimated_worker_count": 40,
}


class TestClassifyField:
    def test_identity_field_is_manual(self):
        conflict = classify_field("abn", "1", "2")
        assert conflict.severity == "high"
        assert not conflict.auto_resolvable
        assert conflict.strategy == "manual"

    def test_contact_field_takes_incoming(self):
        conflict = classify_field("email", "a@x.com", "b@x.com")
        assert conflict.severity == "low"
        assert conflict.resolved_value == "b@x.com"

    def test_one_side_null_keeps_the_value(self):
        assert classify_field("website", None, "acme.com.au").resolved_value == "acme.com.au"
        assert classify_field("website", "acme.com.au", None).resolved_value == "acme.com.au"

    def test_numeric_strategies(self):
        assert classify_field("estimated_worker_count", 40, 25).resolved_value == 40
        assert classify_field("estimated_worker_count", 40, 25, "prefer_latest").resolved_value == 25

    def test_unclassified_field_is_manual(self):
        conflict = classify_field("notes", "x", "y")
        assert conflict.severity == "medium"
        assert conflict.strategy == "manual"


class TestDetectConflicts:
    def test_identity_change_needs_review(self):
        report = detect_conflicts(CURRENT, {
            "name": "Acme Group",
            "phone": "03 9111 1111",
            "suburb": "Carlton",
            "estimated_worker_count": 55,
            "id": 99,
        })
        assert report.has_conflicts
        assert report.suggested_action == "manual_review"
        assert {c.field for c in report.conflicts} == {"name", "phone", "suburb", "estimated_worker_count"}
        assert "name" not in report.merged
        assert report.merged == {
            "phone": "03 9111 1111",
            "suburb": "Carlton",
            "estimated_worker_count": 55,
        }

    def test_auto_merge_when_everything_resolves(self):
        report = detect_conflicts(CURRENT, {"phone": "03 9111 1111", "estimated_worker_count": 30})
        assert report.suggested_action == "auto_merge"
        assert report.merged["estimated_worker_count"] == 40

    def test_partial_merge(self):
        report = detect_conflicts({"notes": "a", "phone": "1"}, {"notes": "b", "phone": "2"})
        assert report.suggested_action == "partial_merge"
        assert report.merged == {"phone": "2"}

    def test_unchanged_fields_are_not_conflicts(self):
        report = detect_conflicts(CURRENT, {"name": CURRENT["name"], "updated_at": "2026-06-30"})
        assert not report.has_conflicts
        assert report.to_dict() == {
            "has_conflicts": False,
            "suggested_action": "none",
            "conflicts": [],
            "merged": {},
        }

    def test_invalid_numeric_strategy(self):
        with pytest.raises(ValueError):
            detect_conflicts(CURRENT, {}, numeric_strategy="prefer_smaller")

"""
test_completion_engine.py — Unit tests for passport completion scoring and
status derivation.

Tests cover:
  - the 16 required fields plus the constituent requirement (17 checks)
  - monotonic progress as fields are filled
  - constituent validity (non-empty material, positive percentage)
  - status derivation: draft / complete / published gating

All tests are pure unit tests; no database or external services required.
"""

from types import SimpleNamespace

import pytest

from app.errors import ValidationError
from app.services.completion_engine import (
    REQUIRED_FIELDS,
    STATUS_COMPLETE,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    compute_completion,
    derive_status,
    has_valid_constituent,
)


def _full_record():
    record = {name: "x" for name in REQUIRED_FIELDS}
    record["constituents"] = [{"material": "Steel", "percentage": 100}]
    return record


# ===========================================================================
# Class 1: Scoring
# ===========================================================================

class TestComputeCompletion:
    """Tests for compute_completion."""

    def test_required_field_count(self):
        assert len(REQUIRED_FIELDS) == 16

    def test_empty_record_scores_zero(self):
        completion = compute_completion({})
        assert completion.percentage == 0
        assert completion.ratio == 0
        assert len(completion.missing) == 17

    def test_full_record_scores_exactly_100(self):
        completion = compute_completion(_full_record())
        assert completion.percentage == 100
        assert completion.is_complete
        assert completion.missing == []

    def test_name_and_category_only(self):
        completion = compute_completion({"name": "Beam", "category": "Steel"})
        # 2 of 17 = 11.76 %
        assert completion.percentage == 12
        assert completion.satisfied == ["name", "category"]

    def test_progress_is_monotonic(self):
        record = {}
        previous = -1
        for name in REQUIRED_FIELDS:
            record[name] = "x"
            percentage = compute_completion(record).percentage
            assert percentage >= previous
            previous = percentage
        assert previous < 100
        record["constituents"] = [{"material": "Steel", "percentage": 100}]
        assert compute_completion(record).percentage == 100

    def test_empty_string_counts_as_missing(self):
        record = _full_record()
        record["gtin"] = ""
        completion = compute_completion(record)
        assert "gtin" in completion.missing
        assert completion.percentage == 94

    def test_zero_numeric_value_counts_as_filled(self):
        record = _full_record()
        record["stage_d_reduction"] = 0
        assert compute_completion(record).is_complete

    def test_works_on_attribute_objects(self):
        passport = SimpleNamespace(**_full_record())
        assert compute_completion(passport).percentage == 100


# ===========================================================================
# Class 2: Constituents
# ===========================================================================

class TestConstituents:
    """Tests for has_valid_constituent."""

    @pytest.mark.parametrize("constituents", [
        None,
        [],
        [{"material": "", "percentage": 50}],
        [{"material": "   ", "percentage": 50}],
        [{"material": "Steel", "percentage": 0}],
        [{"material": "Steel", "percentage": "lots"}],
    ])
    def test_unusable_constituents(self, constituents):
        assert has_valid_constituent(constituents) is False

    def test_one_valid_entry_is_enough(self):
        constituents = [{"material": "", "percentage": 0}, {"material": "Zinc", "percentage": "0.5"}]
        assert has_valid_constituent(constituents) is True


# ===========================================================================
# Class 3: Status
# ===========================================================================

class TestDeriveStatus:
    """Tests for derive_status."""

    def test_partial_record_is_draft(self):
        assert derive_status(compute_completion({"name": "Beam"})) == STATUS_DRAFT

    def test_complete_record_is_complete(self):
        assert derive_status(compute_completion(_full_record())) == STATUS_COMPLETE

    def test_requested_draft_is_overridden_by_completion(self):
        assert derive_status(compute_completion(_full_record()), requested=STATUS_DRAFT) == STATUS_COMPLETE

    def test_publish_complete_record(self):
        completion = compute_completion(_full_record())
        assert derive_status(completion, requested=STATUS_PUBLISHED) == STATUS_PUBLISHED

    def test_publish_incomplete_record_rejected(self):
        with pytest.raises(ValidationError):
            derive_status(compute_completion({"name": "Beam"}), requested=STATUS_PUBLISHED)

    def test_published_stays_published_while_complete(self):
        completion = compute_completion(_full_record())
        assert derive_status(completion, current=STATUS_PUBLISHED) == STATUS_PUBLISHED

    def test_published_falls_back_to_draft_when_fields_removed(self):
        record = _full_record()
        record["gtin"] = None
        assert derive_status(compute_completion(record), current=STATUS_PUBLISHED) == STATUS_DRAFT

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            derive_status(compute_completion({}), requested="archived")

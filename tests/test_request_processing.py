from __future__ import annotations

import pytest

from care_calculators.hba1c_assessment.request_processing import (
    coerce_lookback_days,
    normalize_patient_id,
    rows_to_assessment_requests,
)


def test_normalize_patient_id() -> None:
    assert normalize_patient_id(" P001 ") == "P001"
    assert normalize_patient_id(42) == "42"
    assert normalize_patient_id("") is None
    assert normalize_patient_id("   ") is None
    assert normalize_patient_id(None) is None


def test_coerce_lookback_days() -> None:
    assert coerce_lookback_days(None) is None
    assert coerce_lookback_days("30") == 30
    assert coerce_lookback_days(0) is None


def test_rows_to_requests_skips_missing_ids() -> None:
    requests, stats = rows_to_assessment_requests(
        [("P1", 180), (None, None), ("  ", 30), ("P2", None)]
    )

    assert [r.patient_id for r in requests] == ["P1", "P2"]
    assert requests[0].lookback_days == 180
    assert stats == {"skipped": 2}


def test_rows_to_requests_error_mode() -> None:
    with pytest.raises(ValueError, match="Row 2"):
        rows_to_assessment_requests([("P1", None), (None, None)], invalid_patient="error")


def test_rows_to_requests_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError):
        rows_to_assessment_requests([], invalid_patient="coerce")

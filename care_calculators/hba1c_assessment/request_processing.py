from __future__ import annotations

from typing import Any, Iterable

from care_calculators.hba1c_assessment.models import AssessmentRequest


def normalize_patient_id(value: Any) -> str | None:
    """Return the patient id as a stripped string, or None if null/blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_lookback_days(value: Any) -> int | None:
    """Coerce a lookback value to a positive int, or None if absent/non-positive."""
    if value is None:
        return None
    days = int(value)
    return days if days >= 1 else None


def rows_to_assessment_requests(
    rows: Iterable[tuple[Any, ...]],
    *,
    invalid_patient: str = "skip",
) -> tuple[list[AssessmentRequest], dict[str, Any]]:
    """
    Convert raw database rows into AssessmentRequest objects with validation.

    Expected row format:
    (patient_id, lookback_days)
    """
    requests: list[AssessmentRequest] = []
    skipped = 0

    if invalid_patient not in {"skip", "error"}:
        raise ValueError("invalid_patient must be one of: skip, error")

    for row_number, (patient_id, lookback_days) in enumerate(rows, start=1):
        normalized_id = normalize_patient_id(patient_id)
        if normalized_id is None:
            if invalid_patient == "error":
                raise ValueError(f"Row {row_number} has no patient_id")
            skipped += 1
            continue

        requests.append(
            AssessmentRequest(
                patient_id=normalized_id,
                lookback_days=coerce_lookback_days(lookback_days),
            )
        )

    return requests, {"skipped": skipped}

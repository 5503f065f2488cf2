"""Read-only repositories over the clinical DuckDB store.

The assessor only depends on the three narrow protocols below, so tests (and
other stores) can supply in-memory implementations.

Tables read (schema main_clinical):
    - code_sets: lab-test code definitions, looked up by display name
    - observations: lab results per subject
    - care_programs / program_enrollments: program membership
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

import duckdb

from care_calculators.hba1c_assessment.models import (
    Observation,
    ObservationStatus,
    ObservationValueType,
)

# Hard cap on rows returned by a single query
MAX_FETCH_ROWS = 1000

ACTIVE_ENROLLMENT_STATUS = "Active"
DEFAULT_PROGRAM_PATTERN = "Diabetes"


class RepositoryError(RuntimeError):
    """Raised when the clinical store cannot answer a query."""


class CodeSetLookup(Protocol):
    def resolve(self, name: str) -> str | None: ...


class ObservationSource(Protocol):
    def latest_eligible(
        self, patient_ids: set[str], code_set_id: str | None
    ) -> dict[str, Observation]: ...


class EnrollmentSource(Protocol):
    def active_enrollment(self, patient_ids: set[str]) -> dict[str, bool]: ...


def chunked(ids: Iterable[str], size: int) -> list[list[str]]:
    """Split ids into sorted chunks of at most `size` elements."""
    ordered = sorted(ids)
    return [ordered[i : i + size] for i in range(0, len(ordered), size)]


def latest_by_subject(observations: Iterable[Observation]) -> dict[str, Observation]:
    """Keep the first eligible observation per subject.

    The input must already be ordered most recent first. Rows for a subject
    that is already mapped are discarded, so on equal timestamps the row
    encountered first wins.
    """
    latest: dict[str, Observation] = {}
    for obs in observations:
        if not obs.is_eligible():
            continue
        if obs.subject_id not in latest:
            latest[obs.subject_id] = obs
    return latest


def _check_batch_size(batch_size: int) -> int:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return int(batch_size)


def _placeholders(values: Sequence[object]) -> str:
    return ", ".join("?" for _ in values)


class CodeSetResolver:
    """Resolve a code definition's display name to its identifier."""

    def __init__(self, con: duckdb.DuckDBPyConnection):
        self._con = con

    def resolve(self, name: str) -> str | None:
        try:
            row = self._con.execute(
                """
                SELECT code_set_id
                FROM main_clinical.code_sets
                WHERE display_name = ?
                ORDER BY code_set_id
                LIMIT 1
                """,
                [name],
            ).fetchone()
        except duckdb.Error as exc:
            raise RepositoryError(f"code set lookup for {name!r} failed: {exc}") from exc

        return None if row is None else str(row[0])


class ObservationRepository:
    """Fetch the most recent final numeric observation per patient.

    Patients are queried in chunks of at most `batch_size` ids, and each query
    returns at most `batch_size` rows. When a query is truncated at the cap,
    the chunk's still-unmapped patients are fetched again in halves, down to
    single-patient queries, so that no patient is lost to the limit.
    """

    def __init__(self, con: duckdb.DuckDBPyConnection, *, batch_size: int = MAX_FETCH_ROWS):
        self._con = con
        self.batch_size = _check_batch_size(batch_size)

    def latest_eligible(
        self, patient_ids: set[str], code_set_id: str | None
    ) -> dict[str, Observation]:
        if not patient_ids or code_set_id is None:
            return {}

        latest: dict[str, Observation] = {}
        for chunk in chunked(patient_ids, self.batch_size):
            latest.update(self._fetch_latest(chunk, code_set_id))
        return latest

    def _fetch_latest(self, patient_ids: list[str], code_set_id: str) -> dict[str, Observation]:
        observations = self._query(patient_ids, code_set_id)
        latest = latest_by_subject(observations)

        if len(observations) < self.batch_size or len(patient_ids) == 1:
            return latest

        missing = [pid for pid in patient_ids if pid not in latest]
        half = (len(missing) + 1) // 2
        for part in (missing[:half], missing[half:]):
            if part:
                latest.update(self._fetch_latest(part, code_set_id))
        return latest

    def _query(self, patient_ids: list[str], code_set_id: str) -> list[Observation]:
        sql = f"""
            SELECT
                observation_id,
                subject_id,
                value_quantity,
                unit,
                effective_at,
                status,
                value_type
            FROM main_clinical.observations
            WHERE code_set_id = ?
              AND subject_id IN ({_placeholders(patient_ids)})
              AND status = ?
              AND value_type = ?
              AND value_quantity IS NOT NULL
            ORDER BY effective_at DESC NULLS LAST, observation_id
            LIMIT {int(self.batch_size)}
        """
        params = [
            code_set_id,
            *patient_ids,
            ObservationStatus.FINAL.value,
            ObservationValueType.QUANTITY.value,
        ]
        try:
            rows = self._con.execute(sql, params).fetchall()
        except duckdb.Error as exc:
            raise RepositoryError(f"observation fetch failed: {exc}") from exc

        return [
            Observation(
                observation_id=None if observation_id is None else str(observation_id),
                subject_id=str(subject_id),
                numeric_value=value,
                unit=unit,
                effective_at=effective_at,
                status=str(status),
                value_type=str(value_type),
            )
            for (observation_id, subject_id, value, unit, effective_at, status, value_type) in rows
        ]


class ProgramEnrollmentRepository:
    """Flag patients with an active enrollment in a matching care program.

    Every requested patient starts at False and is only ever upgraded to True,
    so the returned mapping always covers the full requested set.
    """

    def __init__(
        self,
        con: duckdb.DuckDBPyConnection,
        *,
        program_pattern: str = DEFAULT_PROGRAM_PATTERN,
        batch_size: int = MAX_FETCH_ROWS,
    ):
        self._con = con
        self.program_pattern = program_pattern
        self.batch_size = _check_batch_size(batch_size)

    def active_enrollment(self, patient_ids: set[str]) -> dict[str, bool]:
        if not patient_ids:
            return {}

        flags = {pid: False for pid in patient_ids}
        for chunk in chunked(patient_ids, self.batch_size):
            for pid in self._query(chunk):
                flags[pid] = True
        return flags

    def _query(self, patient_ids: list[str]) -> list[str]:
        # contains() is case-sensitive, like DuckDB's default string comparison.
        # DISTINCT keeps the row count bounded by the chunk size.
        sql = f"""
            SELECT DISTINCT e.patient_id
            FROM main_clinical.program_enrollments e
            JOIN main_clinical.care_programs p ON p.program_id = e.program_id
            WHERE e.patient_id IN ({_placeholders(patient_ids)})
              AND e.status = ?
              AND contains(p.name, ?)
            LIMIT {int(self.batch_size)}
        """
        params = [*patient_ids, ACTIVE_ENROLLMENT_STATUS, self.program_pattern]
        try:
            rows = self._con.execute(sql, params).fetchall()
        except duckdb.Error as exc:
            raise RepositoryError(f"enrollment fetch failed: {exc}") from exc

        return [str(row[0]) for row in rows]

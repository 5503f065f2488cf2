"""HbA1c risk assessment orchestrator.

This module implements the batch pipeline that:
1. Collects the distinct patient ids from the requests
2. Resolves the HbA1c code definition
3. Fetches the latest eligible observation and the program flag per patient
4. Classifies each patient, isolating per-patient faults

A missing code definition (or a store failure while resolving it) fails every
patient identically instead of raising. Any fault while assessing a single
patient is turned into that patient's error result.
"""

from collections.abc import Sequence

import duckdb
from dagster import get_dagster_logger

from care_calculators.hba1c_assessment.classification import classify_hba1c, to_decimal
from care_calculators.hba1c_assessment.models import (
    AssessmentRequest,
    AssessmentResult,
    Observation,
    RiskCategory,
)
from care_calculators.hba1c_assessment.repositories import (
    DEFAULT_PROGRAM_PATTERN,
    MAX_FETCH_ROWS,
    CodeSetLookup,
    CodeSetResolver,
    EnrollmentSource,
    ObservationRepository,
    ObservationSource,
    ProgramEnrollmentRepository,
    RepositoryError,
)

HBA1C_CODE_NAME = "HbA1c"
CODE_SET_NOT_FOUND_MESSAGE = f"{HBA1C_CODE_NAME} CodeSet not found in the system"

logger = get_dagster_logger("hba1c_assessment")


class HbA1cAssessor:
    """Bulk HbA1c risk assessment over a batch of patients.

    Example:
        >>> con = duckdb.connect("clinical_store.duckdb")
        >>> assessor = HbA1cAssessor.from_connection(con)
        >>> results = assessor.assess([AssessmentRequest(patient_id="P001")])
        >>> results[0].risk_category
        <RiskCategory.NEEDS_ATTENTION: 'NeedsAttention'>
    """

    def __init__(
        self,
        code_sets: CodeSetLookup,
        observations: ObservationSource,
        enrollments: EnrollmentSource,
        code_name: str = HBA1C_CODE_NAME,
    ):
        """Initialize the assessor with its read-only sources.

        Args:
            code_sets: Resolves the HbA1c display name to a code set id
            observations: Returns the latest eligible observation per patient
            enrollments: Returns the diabetes program flag per patient
            code_name: Display name of the lab-test code definition
        """
        self._code_sets = code_sets
        self._observations = observations
        self._enrollments = enrollments
        self.code_name = code_name

    @classmethod
    def from_connection(
        cls,
        con: duckdb.DuckDBPyConnection,
        *,
        code_name: str = HBA1C_CODE_NAME,
        program_pattern: str = DEFAULT_PROGRAM_PATTERN,
        batch_size: int = MAX_FETCH_ROWS,
    ) -> "HbA1cAssessor":
        """Build an assessor reading from a DuckDB clinical store."""
        return cls(
            code_sets=CodeSetResolver(con),
            observations=ObservationRepository(con, batch_size=batch_size),
            enrollments=ProgramEnrollmentRepository(
                con, program_pattern=program_pattern, batch_size=batch_size
            ),
            code_name=code_name,
        )

    def assess(
        self, requests: Sequence[AssessmentRequest | None] | None
    ) -> list[AssessmentResult]:
        """Assess every distinct patient in the batch.

        Args:
            requests: Assessment requests; None entries are ignored

        Returns:
            One result per distinct patient id, in first-seen request order
        """
        if not requests:
            return []

        # Keyed by patient id; kept so per-request context is available downstream
        by_patient: dict[str, AssessmentRequest] = {}
        for request in requests:
            if request is None:
                continue
            by_patient.setdefault(request.patient_id, request)

        if not by_patient:
            return []

        patient_ids = set(by_patient)
        logger.info(f"Assessing HbA1c risk for {len(patient_ids)} patients")

        if any(r.lookback_days is not None for r in by_patient.values()):
            logger.debug("lookback_days is reserved and not applied to observation selection")

        try:
            code_set_id = self._code_sets.resolve(self.code_name)
        except RepositoryError as exc:
            logger.warning(f"{self.code_name} code set lookup failed: {exc}")
            return self._fail_batch(by_patient, f"{self.code_name} CodeSet lookup failed: {exc}")

        if code_set_id is None:
            logger.warning(f"No code set named {self.code_name!r}; failing the whole batch")
            return self._fail_batch(by_patient, CODE_SET_NOT_FOUND_MESSAGE)

        observations = self._observations.latest_eligible(patient_ids, code_set_id)
        enrollment = self._enrollments.active_enrollment(patient_ids)

        results = [
            self._assess_patient(patient_id, observations, enrollment)
            for patient_id in by_patient
        ]

        errors = sum(1 for r in results if r.has_error)
        logger.info(f"Assessed {len(results)} patients ({errors} with errors)")
        return results

    def _assess_patient(
        self,
        patient_id: str,
        observations: dict[str, Observation],
        enrollment: dict[str, bool],
    ) -> AssessmentResult:
        try:
            observation = observations.get(patient_id)
            if observation is not None and observation.numeric_value is not None:
                value = to_decimal(observation.numeric_value)
                category = classify_hba1c(value)
            else:
                value, category = None, RiskCategory.NO_DATA

            return AssessmentResult(
                patient_id=patient_id,
                hba1c_value=value,
                risk_category=category,
                is_in_program=bool(enrollment.get(patient_id, False)),
            )
        except Exception as exc:
            logger.warning(f"Failed to assess patient {patient_id}: {exc!r}")
            return AssessmentResult(
                patient_id=patient_id,
                error_message=f"Error processing patient {patient_id}: {exc}",
            )

    @staticmethod
    def _fail_batch(
        by_patient: dict[str, AssessmentRequest], message: str
    ) -> list[AssessmentResult]:
        return [
            AssessmentResult(patient_id=patient_id, error_message=message)
            for patient_id in by_patient
        ]

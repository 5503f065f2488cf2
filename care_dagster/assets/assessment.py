from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import polars as pl
from dagster import AssetExecutionContext, Config, Output, asset

from care_calculators.hba1c_assessment import AssessmentResult, HbA1cAssessor
from care_calculators.hba1c_assessment.classification import summarize_results
from care_calculators.hba1c_assessment.duckdb_to_csv import read_assessment_input
from care_calculators.hba1c_assessment.request_processing import rows_to_assessment_requests
from care_dagster.resources.duckdb_resource import DuckDBResource

# Matches main_clinical.observations.value_quantity
HBA1C_DTYPE = pl.Decimal(10, 3)

RESULT_SCHEMA = {
    "patient_id": pl.Utf8,
    "hba1c_value": HBA1C_DTYPE,
    "risk_category": pl.Utf8,
    "is_in_program": pl.Boolean,
    "error_message": pl.Utf8,
}


class InvalidPatientOption(str, Enum):
    """How input rows without a usable patient_id are handled."""

    skip = "skip"
    error = "error"


class AssessmentConfig(Config):
    patient_ids: Optional[list[str]] = None
    input_schema: str = "main_intermediate"
    input_table: str = "int_hba1c_assessment_input"
    code_name: str = "HbA1c"
    program_pattern: str = "Diabetes"
    batch_size: int = 1000
    invalid_patient: InvalidPatientOption = InvalidPatientOption.skip
    run_description: str = "HbA1c risk assessment run"


def results_to_frame(results: list[AssessmentResult]) -> pl.DataFrame:
    """One row per result; hba1c_value keeps its exact decimal value."""
    rows: list[dict[str, Any]] = [
        {
            "patient_id": r.patient_id,
            "hba1c_value": Decimal(r.hba1c_value) if r.hba1c_value is not None else None,
            "risk_category": r.risk_category.value if r.risk_category is not None else None,
            "is_in_program": r.is_in_program,
            "error_message": r.error_message,
        }
        for r in results
    ]
    return pl.DataFrame(rows, schema=RESULT_SCHEMA)


@asset
def hba1c_risk_assessments(
    context: AssetExecutionContext, config: AssessmentConfig, duckdb: DuckDBResource
) -> Output[pl.DataFrame]:
    """Assess HbA1c risk tier and diabetes program enrollment for a patient batch.

    Patients come from `config.patient_ids` when given, otherwise from
    `{input_schema}.{input_table}`. The store is only read.
    """

    context.log.info(f"Connecting to DuckDB at: {duckdb.path}")
    con = duckdb.get_connection().connect()

    assessed_at = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    try:
        if config.patient_ids is not None:
            rows = [(patient_id, None) for patient_id in config.patient_ids]
        else:
            rows = read_assessment_input(
                con, schema=config.input_schema, table=config.input_table
            )

        requests, stats = rows_to_assessment_requests(
            rows, invalid_patient=InvalidPatientOption(config.invalid_patient).value
        )
        if stats["skipped"] > 0:
            context.log.warning(f"Skipped {stats['skipped']} rows without a patient_id.")

        context.log.info(f"Starting assessment for {len(requests)} requests...")

        assessor = HbA1cAssessor.from_connection(
            con,
            code_name=config.code_name,
            program_pattern=config.program_pattern,
            batch_size=config.batch_size,
        )
        results = assessor.assess(requests)
    finally:
        con.close()

    summary = summarize_results(results)
    if summary["errors"]:
        context.log.warning(f"{summary['errors']}/{summary['total']} patients failed assessment")
    context.log.info(f"Assessed {summary['total']} patients at {assessed_at}")

    return Output(
        results_to_frame(results),
        metadata={
            "assessed_at": assessed_at,
            "run_description": config.run_description,
            "skipped_rows": int(stats["skipped"]),
            **{key: int(value) for key, value in summary.items()},
        },
    )

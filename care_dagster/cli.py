from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from care_calculators.hba1c_assessment import AssessmentRequest, HbA1cAssessor
from care_calculators.hba1c_assessment.assessor import HBA1C_CODE_NAME
from care_calculators.hba1c_assessment.classification import summarize_results
from care_calculators.hba1c_assessment.duckdb_to_csv import assess_from_duckdb_to_csv
from care_calculators.hba1c_assessment.repositories import DEFAULT_PROGRAM_PATTERN, MAX_FETCH_ROWS
from care_dagster.assets.assessment import InvalidPatientOption
from care_dagster.db.bootstrap import ensure_clinical_store
from care_dagster.resources.duckdb_resource import DuckDBResource, default_duckdb_path

app = typer.Typer(no_args_is_help=True, help="Care CLI - Clinical store and HbA1c assessment utilities")

DEFAULT_DUCKDB_PATH = default_duckdb_path()


@app.command(name="db-bootstrap")
def db_bootstrap(
    duckdb_path: str = typer.Option(DEFAULT_DUCKDB_PATH, "--duckdb-path"),
) -> None:
    """Create the clinical store schemas + tables in DuckDB.

    Creates: `main_clinical`, `main_intermediate`.
    """

    res = DuckDBResource(path=duckdb_path)
    con = res.get_connection().connect()
    try:
        ensure_clinical_store(con)
    finally:
        con.close()

    typer.echo(f"Bootstrapped clinical store at {Path(duckdb_path).resolve()}")


@app.command()
def assess(
    patient_ids: list[str] = typer.Argument(..., help="Patient ids to assess"),
    duckdb_path: str = typer.Option(DEFAULT_DUCKDB_PATH, "--duckdb-path"),
    code_name: str = typer.Option(HBA1C_CODE_NAME, "--code-name", help="Display name of the HbA1c code set"),
    program_pattern: str = typer.Option(DEFAULT_PROGRAM_PATTERN, "--program-pattern"),
    batch_size: int = typer.Option(MAX_FETCH_ROWS, "--batch-size", min=1),
) -> None:
    """Assess the given patients and print one JSON object per result."""

    res = DuckDBResource(path=duckdb_path)
    con = res.get_connection().connect()
    try:
        assessor = HbA1cAssessor.from_connection(
            con, code_name=code_name, program_pattern=program_pattern, batch_size=batch_size
        )
        results = assessor.assess([AssessmentRequest(patient_id=pid) for pid in patient_ids])
    finally:
        con.close()

    for result in results:
        typer.echo(result.model_dump_json())

    summary = summarize_results(results)
    typer.echo(f"Assessed {summary['total']} patients ({summary['errors']} errors)", err=True)


@app.command(name="export-csv")
def export_csv(
    duckdb_path: str = typer.Option(DEFAULT_DUCKDB_PATH, "--duckdb-path"),
    output_csv: Optional[str] = typer.Option(
        None,
        "--output-csv",
        help="Output CSV path. Defaults to tmp_exports/YYYYMMDD_HHMMSSffffff_hba1c_assessments.csv",
    ),
    schema: str = typer.Option("main_intermediate", "--schema"),
    table: str = typer.Option("int_hba1c_assessment_input", "--table"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Optional row limit for smoke tests"),
    invalid_patient: InvalidPatientOption = typer.Option(
        InvalidPatientOption.skip, "--invalid-patient", help="skip or error"
    ),
    code_name: str = typer.Option(HBA1C_CODE_NAME, "--code-name", help="Display name of the HbA1c code set"),
    program_pattern: str = typer.Option(DEFAULT_PROGRAM_PATTERN, "--program-pattern"),
    batch_size: int = typer.Option(MAX_FETCH_ROWS, "--batch-size", min=1),
) -> None:
    """Read the batch input relation and write HbA1c assessments to CSV."""

    if not output_csv:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S%f")
        output_csv = str(Path.cwd() / "tmp_exports" / f"{timestamp}_hba1c_assessments.csv")

    count = assess_from_duckdb_to_csv(
        duckdb_path=duckdb_path,
        output_csv_path=output_csv,
        schema=schema,
        table=table,
        limit=limit,
        invalid_patient=invalid_patient.value,
        code_name=code_name,
        program_pattern=program_pattern,
        batch_size=batch_size,
    )

    typer.echo(f"Wrote {count} rows to {Path(output_csv).expanduser().resolve()}")


if __name__ == "__main__":
    app()

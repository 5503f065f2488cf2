from __future__ import annotations

import csv
import hashlib
import re
from pathlib import Path

import duckdb
import yaml
from dagster import get_dagster_logger

from care_calculators.hba1c_assessment.assessor import HBA1C_CODE_NAME, HbA1cAssessor
from care_calculators.hba1c_assessment.repositories import DEFAULT_PROGRAM_PATTERN, MAX_FETCH_ROWS
from care_calculators.hba1c_assessment.request_processing import rows_to_assessment_requests

# Number of patients that also get a YAML detail file next to the CSV
YAML_DETAIL_LIMIT = 20

CSV_FIELDNAMES = [
    "patient_id",
    "hba1c_value",
    "risk_category",
    "is_in_program",
    "error_message",
]

logger = get_dagster_logger("hba1c_assessment")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def detail_file_path(yaml_dir: Path, patient_id: str) -> Path:
    """Return the YAML detail path for a patient, always directly inside `yaml_dir`.

    Ids may contain path separators or dots, so the file name is a slug of the
    id plus a short hash that keeps distinct ids with the same slug apart.
    """
    slug = _UNSAFE_FILENAME_CHARS.sub("_", patient_id).strip("_")[:64] or "patient"
    digest = hashlib.sha1(patient_id.encode("utf-8")).hexdigest()[:8]
    path = (yaml_dir / f"{slug}_{digest}.yml").resolve()
    if path.parent != yaml_dir.resolve():
        raise ValueError(f"Detail path for patient {patient_id!r} escapes {yaml_dir}")
    return path


def read_assessment_input(
    con: duckdb.DuckDBPyConnection,
    *,
    schema: str = "main_intermediate",
    table: str = "int_hba1c_assessment_input",
    limit: int | None = None,
) -> list[tuple]:
    """Read raw `(patient_id, lookback_days)` rows from the batch input relation."""
    sql = f"""
    SELECT
        patient_id,
        lookback_days
    FROM {schema}.{table}
    """.strip()
    if limit is not None:
        sql += f"\nLIMIT {int(limit)}"

    return con.execute(sql).fetchall()


def assess_from_duckdb_to_csv(
    *,
    duckdb_path: str,
    output_csv_path: str,
    schema: str = "main_intermediate",
    table: str = "int_hba1c_assessment_input",
    limit: int | None = None,
    invalid_patient: str = "skip",
    code_name: str = HBA1C_CODE_NAME,
    program_pattern: str = DEFAULT_PROGRAM_PATTERN,
    batch_size: int = MAX_FETCH_ROWS,
) -> int:
    """Read the patient batch from DuckDB and write HbA1c assessments to CSV.

    Returns number of rows written.

    Expected input relation: `{schema}.{table}` with columns:
    - patient_id, lookback_days
    """

    con = duckdb.connect(str(Path(duckdb_path).expanduser().resolve()))
    try:
        rows = read_assessment_input(con, schema=schema, table=table, limit=limit)
        requests, stats = rows_to_assessment_requests(rows, invalid_patient=invalid_patient)

        assessor = HbA1cAssessor.from_connection(
            con,
            code_name=code_name,
            program_pattern=program_pattern,
            batch_size=batch_size,
        )
        results = assessor.assess(requests)

        output_path = Path(output_csv_path).expanduser().resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)

        yaml_dir = output_path.parent / "yaml_details"
        yaml_dir.mkdir(parents=True, exist_ok=True)

        with output_path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
            writer.writeheader()

            for i, result in enumerate(results):
                record = result.model_dump(mode="json")

                if i < YAML_DETAIL_LIMIT:
                    with detail_file_path(yaml_dir, result.patient_id).open("w", encoding="utf-8") as yf:
                        yaml.safe_dump(record, yf, sort_keys=False)

                writer.writerow({name: record[name] for name in CSV_FIELDNAMES})

        skipped = int(stats.get("skipped", 0))
        if skipped:
            total_rows = len(rows)
            pct = (skipped / total_rows) * 100 if total_rows > 0 else 0
            logger.warning(
                f"Skipped {skipped}/{total_rows} ({pct:.2f}%) rows due to missing patient_id"
            )

        return len(results)
    finally:
        con.close()

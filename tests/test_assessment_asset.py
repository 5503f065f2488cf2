from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import duckdb
import polars as pl
import pytest
from dagster import build_asset_context
from pydantic import ValidationError

from care_dagster.assets.assessment import (
    AssessmentConfig,
    InvalidPatientOption,
    hba1c_risk_assessments,
)
from care_dagster.resources.duckdb_resource import DuckDBResource


def seed_store(path: Path) -> None:
    con = duckdb.connect(str(path))
    try:
        con.executemany(
            "INSERT INTO main_intermediate.int_hba1c_assessment_input VALUES (?, ?)",
            [("M1", None), ("M2", None), ("", None)],
        )
        con.executemany(
            """
            INSERT INTO main_clinical.observations (
                observation_id, subject_id, code_set_id, status, value_type, value_quantity, unit, effective_at
            ) VALUES (?, ?, 'CS-HBA1C', 'Final', 'Quantity', ?, '%', ?)
            """,
            [
                ("O1", "M1", 6.4, datetime(2024, 4, 1)),
                ("O2", "M2", 10.2, datetime(2024, 4, 2)),
            ],
        )
        con.execute(
            "INSERT INTO main_clinical.program_enrollments VALUES ('E1', 'M2', 'PRG-T2D', 'Active')"
        )
    finally:
        con.close()


def test_asset_reads_input_table(store_path: Path) -> None:
    seed_store(store_path)

    ctx = build_asset_context()
    output = hba1c_risk_assessments(
        context=ctx,
        config=AssessmentConfig(),
        duckdb=DuckDBResource(path=str(store_path)),
    )

    df = output.value.sort("patient_id")
    assert df["patient_id"].to_list() == ["M1", "M2"]
    assert df["risk_category"].to_list() == ["WellControlled", "HighRisk"]
    assert df["is_in_program"].to_list() == [False, True]
    assert df["error_message"].to_list() == [None, None]
    assert df.schema["hba1c_value"] == pl.Decimal(10, 3)
    assert df["hba1c_value"].to_list() == [Decimal("6.400"), Decimal("10.200")]

    assert "total" in output.metadata
    assert "skipped_rows" in output.metadata


def test_asset_uses_configured_patient_ids(store_path: Path) -> None:
    seed_store(store_path)

    ctx = build_asset_context()
    output = hba1c_risk_assessments(
        context=ctx,
        config=AssessmentConfig(patient_ids=["M2", "NEW"]),
        duckdb=DuckDBResource(path=str(store_path)),
    )

    rows = {r["patient_id"]: r for r in output.value.to_dicts()}
    assert set(rows) == {"M2", "NEW"}
    assert rows["NEW"]["risk_category"] == "NoData"
    assert rows["NEW"]["hba1c_value"] is None


def test_definitions_load() -> None:
    from care_dagster.definitions import default_assessment_config, hba1c_assessment_job

    assert hba1c_assessment_job.name == "hba1c_assessment_job"
    assert "hba1c_risk_assessments" in default_assessment_config["ops"]


def test_invalid_patient_option_rejects_unknown_values() -> None:
    with pytest.raises(ValidationError):
        AssessmentConfig(invalid_patient="bogus")

    assert AssessmentConfig(invalid_patient="error").invalid_patient is InvalidPatientOption.error


def test_asset_error_mode_rejects_rows_without_patient_id(store_path: Path) -> None:
    seed_store(store_path)

    ctx = build_asset_context()
    with pytest.raises(ValueError, match="has no patient_id"):
        hba1c_risk_assessments(
            context=ctx,
            config=AssessmentConfig(invalid_patient="error"),
            duckdb=DuckDBResource(path=str(store_path)),
        )

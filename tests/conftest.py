from __future__ import annotations

from pathlib import Path

import duckdb
import pytest

from care_dagster.db.bootstrap import ensure_clinical_store

HBA1C_CODE_SET_ID = "CS-HBA1C"


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Empty clinical store with the HbA1c code set registered."""
    path = tmp_path / "clinical_store.duckdb"

    con = duckdb.connect(str(path))
    try:
        ensure_clinical_store(con)
        con.executemany(
            "INSERT INTO main_clinical.code_sets VALUES (?, ?, ?, ?)",
            [
                (HBA1C_CODE_SET_ID, "HbA1c", "4548-4", "http://loinc.org"),
                ("CS-LDL", "LDL Cholesterol", "13457-7", "http://loinc.org"),
            ],
        )
        con.executemany(
            "INSERT INTO main_clinical.care_programs VALUES (?, ?)",
            [
                ("PRG-T2D", "Type 2 Diabetes Management"),
                ("PRG-HTN", "Hypertension Outreach"),
                ("PRG-LC", "diabetes prevention (pilot)"),
            ],
        )
    finally:
        con.close()

    return path

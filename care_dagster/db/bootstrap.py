from __future__ import annotations

import duckdb


def ensure_core_schemas(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("CREATE SCHEMA IF NOT EXISTS main_clinical")
    con.execute("CREATE SCHEMA IF NOT EXISTS main_intermediate")


def ensure_clinical_tables(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_clinical.code_sets (
            code_set_id VARCHAR PRIMARY KEY,
            display_name VARCHAR,
            code VARCHAR,
            code_system VARCHAR
        )
        """
    )

    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_clinical.observations (
            observation_id VARCHAR PRIMARY KEY,
            subject_id VARCHAR,
            code_set_id VARCHAR,
            status VARCHAR,
            value_type VARCHAR,
            value_quantity DECIMAL(10, 3),
            unit VARCHAR,
            effective_at TIMESTAMP
        )
        """
    )

    # Lookups filter on (code_set_id, subject_id) and sort on effective_at
    con.execute(
        "CREATE INDEX IF NOT EXISTS idx_observations_code_subject "
        "ON main_clinical.observations (code_set_id, subject_id)"
    )

    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_clinical.care_programs (
            program_id VARCHAR PRIMARY KEY,
            name VARCHAR
        )
        """
    )

    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_clinical.program_enrollments (
            enrollment_id VARCHAR PRIMARY KEY,
            patient_id VARCHAR,
            program_id VARCHAR,
            status VARCHAR
        )
        """
    )


def ensure_input_tables(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_intermediate.int_hba1c_assessment_input (
            patient_id VARCHAR,
            lookback_days INTEGER
        )
        """
    )


def ensure_clinical_store(con: duckdb.DuckDBPyConnection) -> None:
    ensure_core_schemas(con)
    ensure_clinical_tables(con)
    ensure_input_tables(con)

from pathlib import Path

import yaml
from dagster import Definitions, define_asset_job

from care_dagster.assets.assessment import hba1c_risk_assessments
from care_dagster.resources.duckdb_resource import DuckDBResource

CONFIG_DIR = Path(__file__).resolve().parent / "configs"

# Load default assessment config
with open(CONFIG_DIR / "assessment_example.yaml") as f:
    default_assessment_config = yaml.safe_load(f)

hba1c_assessment_job = define_asset_job(
    name="hba1c_assessment_job",
    selection=["hba1c_risk_assessments"],
    description="""
    # HbA1c Risk Assessment Job

    Assesses every patient in the batch input table.

    **Steps:**
    1. Reads patient ids from `main_intermediate.int_hba1c_assessment_input`
    2. Resolves the HbA1c code set and fetches the latest final result per patient
    3. Assigns a risk tier and flags active diabetes program enrollment
    """,
    tags={"team": "care-management"},
    config=default_assessment_config,
)


definitions = Definitions(
    assets=[hba1c_risk_assessments],
    resources={
        "duckdb": DuckDBResource(),
    },
    jobs=[hba1c_assessment_job],
)

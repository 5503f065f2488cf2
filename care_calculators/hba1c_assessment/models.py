"""Data models for the HbA1c risk assessment."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RiskCategory(str, Enum):
    """Risk tier assigned from the most recent HbA1c value."""

    WELL_CONTROLLED = "WellControlled"
    NEEDS_ATTENTION = "NeedsAttention"
    HIGH_RISK = "HighRisk"
    NO_DATA = "NoData"


class ObservationStatus(str, Enum):
    FINAL = "Final"
    PRELIMINARY = "Preliminary"
    AMENDED = "Amended"
    CANCELLED = "Cancelled"
    ENTERED_IN_ERROR = "EnteredInError"


class ObservationValueType(str, Enum):
    QUANTITY = "Quantity"
    STRING = "String"
    CODEABLE_CONCEPT = "CodeableConcept"


class AssessmentRequest(BaseModel):
    """Input data for a single patient.

    Attributes:
        patient_id: Identifier of the patient to assess (required)
        lookback_days: Reserved recency window; carried but not applied
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    patient_id: str = Field(
        ...,
        min_length=1,
        title="Patient ID",
        description="Identifier of the patient whose HbA1c risk should be assessed.",
    )
    lookback_days: int | None = Field(
        default=None,
        ge=1,
        title="Lookback Days",
        description=(
            "Reserved. Number of days of lab history to consider; "
            "currently not applied to observation selection."
        ),
    )


class Observation(BaseModel):
    """A lab observation row as returned by the observation repository.

    Status and value type stay plain strings so rows with codes outside the
    known enums can still be represented (and filtered out).
    """

    observation_id: str | None = None
    subject_id: str
    numeric_value: Decimal | None = None
    unit: str | None = None
    effective_at: datetime | None = None
    status: str = ObservationStatus.FINAL.value
    value_type: str = ObservationValueType.QUANTITY.value

    def is_eligible(self) -> bool:
        return (
            self.status == ObservationStatus.FINAL.value
            and self.value_type == ObservationValueType.QUANTITY.value
            and self.numeric_value is not None
        )


class AssessmentResult(BaseModel):
    """Output from the assessment of one patient.

    Attributes:
        patient_id: Patient identifier (from input)
        hba1c_value: Most recent eligible HbA1c value, if any
        risk_category: Risk tier derived from hba1c_value
        is_in_program: Active enrollment in a diabetes care program
        error_message: Set when the patient (or the whole batch) could not be assessed
    """

    model_config = ConfigDict(frozen=True)

    patient_id: str = Field(
        ...,
        title="Patient ID",
        description="Identifier of the assessed patient.",
    )
    hba1c_value: Decimal | None = Field(
        default=None,
        title="HbA1c Value",
        description="Value of the most recent final HbA1c lab result, in percent.",
    )
    risk_category: RiskCategory | None = Field(
        default=None,
        title="Risk Category",
        description="WellControlled (< 7.0), NeedsAttention (7.0 to < 9.0), HighRisk (>= 9.0) or NoData.",
    )
    is_in_program: bool = Field(
        default=False,
        title="In Diabetes Program",
        description="True when the patient has an active enrollment in a diabetes care program.",
    )
    error_message: str | None = Field(
        default=None,
        title="Error Message",
        description="Populated when the assessment failed; other fields may then be unset.",
    )

    @model_validator(mode="after")
    def _category_matches_value(self) -> "AssessmentResult":
        if self.risk_category is None:
            return self
        if self.risk_category == RiskCategory.NO_DATA and self.hba1c_value is not None:
            raise ValueError("NoData results must not carry an hba1c_value")
        if self.risk_category != RiskCategory.NO_DATA and self.hba1c_value is None:
            raise ValueError(f"{self.risk_category.value} results require an hba1c_value")
        return self

    @property
    def has_error(self) -> bool:
        return self.error_message is not None

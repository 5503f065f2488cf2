"""Tests for HbA1c assessment models."""

from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from care_calculators.hba1c_assessment.models import (
    AssessmentRequest,
    AssessmentResult,
    Observation,
    RiskCategory,
)


class TestAssessmentRequest:
    """Tests for AssessmentRequest model."""

    def test_valid_request(self):
        request = AssessmentRequest(patient_id="P001", lookback_days=365)
        assert request.patient_id == "P001"
        assert request.lookback_days == 365

    def test_lookback_defaults_to_none(self):
        assert AssessmentRequest(patient_id="P002").lookback_days is None

    def test_missing_patient_id_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentRequest()

    def test_null_patient_id_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentRequest(patient_id=None)

    def test_blank_patient_id_rejected(self):
        """Whitespace is stripped before the length check."""
        with pytest.raises(ValidationError):
            AssessmentRequest(patient_id="   ")

    def test_non_positive_lookback_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentRequest(patient_id="P003", lookback_days=0)

    def test_request_is_immutable(self):
        request = AssessmentRequest(patient_id="P004")
        with pytest.raises(ValidationError):
            request.patient_id = "P005"

    def test_fields_carry_designer_metadata(self):
        """Every exposed field has a label and description in the JSON schema."""
        for model in (AssessmentRequest, AssessmentResult):
            properties = model.model_json_schema()["properties"]
            for name, prop in properties.items():
                assert prop.get("title"), f"{model.__name__}.{name} has no title"
                assert prop.get("description"), f"{model.__name__}.{name} has no description"

        assert AssessmentRequest.model_json_schema()["required"] == ["patient_id"]


class TestAssessmentResult:
    """Tests for AssessmentResult consistency rules."""

    def test_error_only_result(self):
        result = AssessmentResult(patient_id="P001", error_message="boom")
        assert result.has_error
        assert result.hba1c_value is None
        assert result.risk_category is None
        assert result.is_in_program is False

    def test_no_data_with_value_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentResult(
                patient_id="P001",
                hba1c_value=Decimal("6.5"),
                risk_category=RiskCategory.NO_DATA,
            )

    def test_category_without_value_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentResult(patient_id="P001", risk_category=RiskCategory.HIGH_RISK)

    def test_json_dump_uses_category_names(self):
        result = AssessmentResult(
            patient_id="P001",
            hba1c_value=Decimal("7.2"),
            risk_category=RiskCategory.NEEDS_ATTENTION,
            is_in_program=True,
        )
        dumped = result.model_dump(mode="json")
        assert dumped["risk_category"] == "NeedsAttention"
        assert dumped["is_in_program"] is True


class TestObservation:
    """Tests for observation eligibility."""

    def test_final_quantity_with_value_is_eligible(self):
        obs = Observation(
            subject_id="P001",
            numeric_value=Decimal("6.1"),
            effective_at=datetime(2024, 1, 1),
        )
        assert obs.is_eligible()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"status": "Preliminary"},
            {"value_type": "String"},
            {"numeric_value": None},
        ],
    )
    def test_ineligible_observations(self, overrides):
        fields = {"subject_id": "P001", "numeric_value": Decimal("6.1"), **overrides}
        assert not Observation(**fields).is_eligible()

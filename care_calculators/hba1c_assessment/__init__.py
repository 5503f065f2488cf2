"""HbA1c Risk Assessment.

Determines each patient's most recent final HbA1c result, assigns a risk
tier, and flags active enrollment in a diabetes care program.
"""

from care_calculators.hba1c_assessment.assessor import HbA1cAssessor
from care_calculators.hba1c_assessment.models import (
    AssessmentRequest,
    AssessmentResult,
    RiskCategory,
)

__all__ = ["AssessmentRequest", "AssessmentResult", "HbA1cAssessor", "RiskCategory"]

"""Care calculators - Clinical risk assessment implementations.

Available calculators:
    - HbA1cAssessor: bulk HbA1c risk tiering with diabetes program enrollment
"""

from care_calculators.hba1c_assessment import AssessmentRequest, AssessmentResult, HbA1cAssessor

__all__ = ["AssessmentRequest", "AssessmentResult", "HbA1cAssessor"]

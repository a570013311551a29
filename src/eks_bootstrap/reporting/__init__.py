"""Cost estimates and text reports."""

from .cost_estimator import CostEstimate, CostEstimator
from .reports import REPORT_FILES, ReportRenderer

__all__ = [
    "CostEstimate",
    "CostEstimator",
    "REPORT_FILES",
    "ReportRenderer",
]

"""Detectors module for opportunity detection and executability"""

from flashbot.detectors.executability import (
    CostModel,
    ExecutabilityClassifier,
    FixedCostModel,
    RandomCostModel,
    check_thresholds,
)
from flashbot.detectors.opportunity_detector import OpportunityDetector

__all__ = [
    "CostModel",
    "ExecutabilityClassifier",
    "FixedCostModel",
    "OpportunityDetector",
    "RandomCostModel",
    "check_thresholds",
]

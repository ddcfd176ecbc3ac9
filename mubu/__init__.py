"""Snap a product abroad and compare its price with the cheapest Korean listing."""

from .capture import CaptureSession, CaptureStep
from .config import MubuConfig, load_config
from .dashboard import SavingsSummary
from .models import (
    CaptureResult,
    ComparisonStatus,
    PriceComparisonRecord,
    UserAccount,
)
from .pipeline import ComparisonOutcome, PriceComparisonPipeline
from .relevance import is_relevant, select_best_match
from .savings import SavingsTier, classify
from .vision import ProductAnalysis, VisionBackend, create_backend

__all__ = [
    "CaptureSession",
    "CaptureStep",
    "CaptureResult",
    "ComparisonStatus",
    "PriceComparisonRecord",
    "UserAccount",
    "PriceComparisonPipeline",
    "ComparisonOutcome",
    "SavingsSummary",
    "SavingsTier",
    "classify",
    "is_relevant",
    "select_best_match",
    "ProductAnalysis",
    "VisionBackend",
    "create_backend",
    "MubuConfig",
    "load_config",
]

"""Verification core: scoring, decisions, costs, events and orchestration."""

from .costs import CostTracker, calculate_cost, get_model_pricing
from .decision import DecisionEngine, DecisionThresholds
from .events import (
    DatabaseEventSink,
    EventEmitter,
    InMemoryEventSink,
    RedisEventSink,
    VerificationTrace,
)
from .periodic import PeriodicRunSummary, PeriodicVerifier
from .pipeline import VerificationPipeline, build_pipeline
from .scheduler import calculate_next_verification_date, get_field_cadence
from .scoring import CHECK_WEIGHTS, calculate_verification_score

__all__ = [
    "CHECK_WEIGHTS",
    "CostTracker",
    "DatabaseEventSink",
    "DecisionEngine",
    "DecisionThresholds",
    "EventEmitter",
    "InMemoryEventSink",
    "PeriodicRunSummary",
    "PeriodicVerifier",
    "RedisEventSink",
    "VerificationPipeline",
    "VerificationTrace",
    "build_pipeline",
    "calculate_cost",
    "calculate_next_verification_date",
    "calculate_verification_score",
    "get_field_cadence",
    "get_model_pricing",
]

#!/usr/bin/env python3
"""
TA Agent Pipeline

Gated multi-timeframe analysis: 15m context, 5m setup, option chain
feasibility and 1m trigger, ending in one Recommendation.

The orchestrator lives in pipeline.orchestrator and is imported from
there; this package only exports the record types, which the brain
package also depends on.
"""
from .types import (
    Decision,
    OptionCandidate,
    PipelineResult,
    Recommendation,
    Status,
    TimeframeContext,
)


__all__ = [
    "Decision",
    "OptionCandidate",
    "PipelineResult",
    "Recommendation",
    "Status",
    "TimeframeContext",
]

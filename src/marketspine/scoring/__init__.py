"""Deterministic scoring: score, confidence, abuse signals, valuation, stability."""

from marketspine.scoring.abuse import AbuseSignals, detect_abuse, integrity_score
from marketspine.scoring.confidence import compute_confidence
from marketspine.scoring.engine import ScoreResult, score
from marketspine.scoring.facts import CompanyFacts
from marketspine.scoring.service import ScoreService
from marketspine.scoring.stability import StabilityProfile, smooth_capped, smooth_ewma, stability_profile
from marketspine.scoring.valuation import ValuationRange, estimate_valuation

__all__ = [
    "CompanyFacts",
    "ScoreResult",
    "score",
    "compute_confidence",
    "AbuseSignals",
    "detect_abuse",
    "integrity_score",
    "ValuationRange",
    "estimate_valuation",
    "StabilityProfile",
    "stability_profile",
    "smooth_ewma",
    "smooth_capped",
    "ScoreService",
]

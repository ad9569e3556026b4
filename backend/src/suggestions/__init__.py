"""
Suggestion disambiguation.

Provides:
- SuggestionDisambiguationEngine for discovering and acting on suggestions
- SuggestionClassifier for keyword-rule classification
"""

from designscout.suggestions.classifier import SuggestionClassifier
from designscout.suggestions.engine import (
    InteractionPattern,
    LocatorStrategy,
    OutcomeKind,
    SelectionOutcome,
    SuggestionDisambiguationEngine,
    build_discovery_script,
)

__all__ = [
    "InteractionPattern",
    "LocatorStrategy",
    "OutcomeKind",
    "SelectionOutcome",
    "SuggestionClassifier",
    "SuggestionDisambiguationEngine",
    "build_discovery_script",
]

"""Keyword-rule classification of suggestion text into a semantic kind."""

from __future__ import annotations

import re
from collections.abc import Sequence

from designscout.config import ClassificationRule, SiteProfile
from designscout.models import SuggestionKind


def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(term.lower())}(?![a-z0-9])")


class SuggestionClassifier:
    """
    Assigns a kind and confidence to suggestion text.

    Rules are checked in order and the first one with a whole-word term match
    wins; text matching no rule gets the default kind and confidence.
    """

    def __init__(
        self,
        rules: Sequence[ClassificationRule],
        default_kind: SuggestionKind = SuggestionKind.GENERAL,
        default_confidence: float = 0.7,
    ) -> None:
        self._rules = [
            (rule, [_term_pattern(term) for term in rule.terms]) for rule in rules
        ]
        self._default_kind = default_kind
        self._default_confidence = default_confidence

    @classmethod
    def from_profile(cls, site: SiteProfile) -> SuggestionClassifier:
        return cls(site.classification_rules, site.default_kind, site.default_confidence)

    def classify(self, text: str) -> tuple[SuggestionKind, float]:
        lowered = text.lower()
        for rule, patterns in self._rules:
            if any(pattern.search(lowered) for pattern in patterns):
                return rule.kind, rule.confidence
        return self._default_kind, self._default_confidence

"""Scoring rule bookkeeping - default bootstrap and name-unique saves."""

import logging
from typing import List, Optional

from src.scoring.config import DEFAULT_RULE_NAME
from src.scoring.errors import NameConflictError
from src.scoring.models import ScoringCategory, ScoringRule
from src.scoring.store import ProjectionStore

logger = logging.getLogger(__name__)


class ScoringRuleBook:
    """Creates and looks up ScoringRules in the store.

    Rules are never edited in place; a changed set of weights is saved
    under a new name.
    """

    def __init__(self, store: ProjectionStore):
        self.store = store

    def default(self) -> ScoringRule:
        """Return the "DefaultPoints" rule, creating it on first access."""
        if self.store.insert_scoring_rule_if_absent(ScoringRule.default()):
            logger.info("Created default scoring rule %r", DEFAULT_RULE_NAME)
        return self.store.get_scoring_rule(DEFAULT_RULE_NAME)

    def is_duplicate_name(self, name: str) -> bool:
        """Whether a rule with exactly this name (case-sensitive) exists."""
        return self.store.count_scoring_rules(name) > 0

    def save(self, rule: ScoringRule) -> ScoringRule:
        """Persist a new rule.

        Raises:
            ValueError: If the name is blank.
            NameConflictError: If a rule with the same name exists.
        """
        if not rule.name or not rule.name.strip():
            raise ValueError("Scoring rule name is required")
        if self.is_duplicate_name(rule.name):
            logger.warning("Rejected duplicate scoring rule name %r", rule.name)
            raise NameConflictError(f"A scoring rule named {rule.name!r} already exists")

        self.store.insert_scoring_rule(rule)
        logger.info("Saved scoring rule %r", rule.name)
        return rule

    def create(self, name: str, **weights: float) -> ScoringRule:
        """Build and save a rule; unspecified categories weigh 0.

        Example:
            book.create("HR heavy", total_bases=1, runs=1, strikeouts=-0.5)
        """
        valid = {category.value for category in ScoringCategory}
        unknown = set(weights) - valid
        if unknown:
            raise ValueError(f"Unknown scoring categories: {sorted(unknown)}")
        return self.save(ScoringRule(name=name, **weights))

    def get(self, name: str) -> Optional[ScoringRule]:
        return self.store.get_scoring_rule(name)

    def all(self) -> List[ScoringRule]:
        return self.store.list_scoring_rules()

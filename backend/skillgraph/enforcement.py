"""
Rule Enforcement Evaluator.

Scans text (a task description or a candidate artifact) for the violation
triggers of every rule and returns one verdict per rule that fired.
REJECT verdicts are listed before SUGGEST verdicts; a gating caller must
treat any REJECT verdict as build-breaking.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from .logging import get_logger
from .models import EnforcementAction, Rule, Verdict
from .registry import RegistryStore

logger = get_logger(__name__)


def _verdict_sort_key(verdict: Verdict) -> tuple:
    action_rank = 0 if verdict.enforcement_action == EnforcementAction.REJECT else 1
    return (action_rank, verdict.severity.rank, verdict.rule_id)


def has_blocking(verdicts: Iterable[Verdict]) -> bool:
    """True if any verdict requires rejection."""
    return any(v.blocking for v in verdicts)


def blocking_verdicts(verdicts: Iterable[Verdict]) -> List[Verdict]:
    return [v for v in verdicts if v.blocking]


class RuleEvaluator:
    """
    Stateless evaluator over a registry snapshot.

    Keyword triggers are matched as whole normalized phrases through the
    keyword index; pattern triggers are regular expressions searched
    case-insensitively in the raw text.
    """

    def __init__(self, store: RegistryStore):
        self.store = store

    def evaluate(self, text: Any) -> List[Verdict]:
        """
        Evaluate text against every rule.

        Args:
            text: Text to scan. Non-string input yields no verdicts.

        Returns:
            Verdicts ordered REJECT first, then by severity and rule id.
        """
        matched = self._collect(text)
        verdicts = [
            self._verdict(self.store.get_rule(rule_id), triggers)
            for rule_id, triggers in matched.items()
        ]
        verdicts.sort(key=_verdict_sort_key)

        if verdicts:
            logger.debug(
                "rules_evaluated",
                verdicts=len(verdicts),
                blocking=sum(1 for v in verdicts if v.blocking),
            )
        return verdicts

    def evaluate_rule(self, rule_id: str, text: Any) -> List[Verdict]:
        """Evaluate a single rule; returns zero or one verdict."""
        rule = self.store.get_rule(rule_id)
        triggers = self._collect(text).get(rule.id)
        return [self._verdict(rule, triggers)] if triggers else []

    def _collect(self, text: Any) -> Dict[str, Set[str]]:
        index = self.store.index
        matched = index.match_rules(text)
        for rule_id, patterns in index.match_patterns(text).items():
            matched.setdefault(rule_id, set()).update(patterns)
        return matched

    @staticmethod
    def _verdict(rule: Rule, triggers: Iterable[str]) -> Verdict:
        return Verdict(
            rule_id=rule.id,
            severity=rule.severity,
            enforcement_action=rule.enforcement_action,
            matched_triggers=sorted(triggers),
            remediating_skills=list(rule.implementation_skills),
        )


def evaluate(store: RegistryStore, text: Any) -> List[Verdict]:
    """Convenience wrapper around :meth:`RuleEvaluator.evaluate`."""
    return RuleEvaluator(store).evaluate(text)

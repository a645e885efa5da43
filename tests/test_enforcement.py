"""
Tests for the Rule Enforcement Evaluator.
"""

import pytest

from backend.skillgraph.enforcement import (
    RuleEvaluator,
    blocking_verdicts,
    evaluate,
    has_blocking,
)
from backend.skillgraph.errors import UnknownRuleError
from backend.skillgraph.models import EnforcementAction, Severity
from backend.skillgraph.registry import RegistryStore


@pytest.fixture
def evaluator(store):
    return RuleEvaluator(store)


class TestEvaluate:
    """Tests for verdict generation."""

    def test_single_reject_verdict(self, make_skill, make_rule):
        """A literal trigger yields exactly one verdict with its remediating skills."""
        store = RegistryStore.build([
            make_skill("scoped-state", keywords=["state"], enforces_rules=["no-globals"]),
            make_rule("no-globals", ["global"], ["scoped-state"]),
        ])
        verdicts = RuleEvaluator(store).evaluate("use a global variable here")
        assert len(verdicts) == 1
        assert verdicts[0].rule_id == "no-globals"
        assert verdicts[0].remediating_skills == ["scoped-state"]
        assert verdicts[0].enforcement_action == EnforcementAction.REJECT
        assert verdicts[0].blocking

    def test_no_trigger(self, evaluator):
        assert evaluator.evaluate("build a widget") == []

    @pytest.mark.parametrize("text", ["", None, 0, ["global"]])
    def test_unmappable_input(self, evaluator, text):
        assert evaluator.evaluate(text) == []

    def test_case_and_punctuation_insensitive(self, evaluator):
        verdicts = evaluator.evaluate("Avoid GLOBAL, state!")
        assert [v.rule_id for v in verdicts] == ["no-globals"]

    def test_pattern_trigger(self, evaluator):
        verdicts = evaluator.evaluate('cursor.execute("SELECT * FROM users WHERE id=" + uid)')
        assert [v.rule_id for v in verdicts] == ["no-raw-sql"]
        assert verdicts[0].matched_triggers == [r"execute\(\s*['\"]select"]

    def test_keyword_and_pattern_merge(self, evaluator):
        """Both trigger kinds on one rule still produce one verdict."""
        verdicts = evaluator.evaluate("raw sql: execute('select 1')")
        assert len(verdicts) == 1
        assert len(verdicts[0].matched_triggers) == 2

    def test_suggest_is_not_blocking(self, evaluator):
        verdicts = evaluator.evaluate("an inline style on the button")
        assert [v.rule_id for v in verdicts] == ["prefer-components"]
        assert verdicts[0].enforcement_action == EnforcementAction.SUGGEST
        assert not has_blocking(verdicts)

    def test_module_level_evaluate(self, store):
        assert [v.rule_id for v in evaluate(store, "a global")] == ["no-globals"]


class TestOrdering:
    """Tests for REJECT-first ordering."""

    @pytest.fixture
    def mixed(self, make_skill, make_rule):
        rules = [
            ("a-suggest-critical", "alpha", "SUGGEST", "critical"),
            ("b-reject-warning", "beta", "REJECT", "warning"),
            ("c-reject-critical", "gamma", "REJECT", "critical"),
            ("d-suggest-info", "delta", "SUGGEST", "informational"),
        ]
        docs = [make_skill("fixer", enforces_rules=[r[0] for r in rules])]
        docs += [make_rule(rid, [kw], ["fixer"], action=a, severity=s) for rid, kw, a, s in rules]
        return RegistryStore.build(docs)

    def test_reject_before_suggest(self, mixed):
        verdicts = RuleEvaluator(mixed).evaluate("alpha beta gamma delta")
        assert [v.rule_id for v in verdicts] == [
            "c-reject-critical",
            "b-reject-warning",
            "a-suggest-critical",
            "d-suggest-info",
        ]

    def test_ties_by_rule_id(self, make_skill, make_rule):
        store = RegistryStore.build([
            make_skill("fixer", enforces_rules=["rule-b", "rule-a"]),
            make_rule("rule-b", ["shared"], ["fixer"]),
            make_rule("rule-a", ["shared"], ["fixer"]),
        ])
        assert [v.rule_id for v in RuleEvaluator(store).evaluate("shared")] == ["rule-a", "rule-b"]

    def test_blocking_helpers(self, mixed):
        verdicts = RuleEvaluator(mixed).evaluate("alpha beta gamma delta")
        assert has_blocking(verdicts)
        assert [v.rule_id for v in blocking_verdicts(verdicts)] == ["c-reject-critical", "b-reject-warning"]
        assert {v.severity for v in verdicts} == {Severity.CRITICAL, Severity.WARNING, Severity.INFORMATIONAL}


class TestEvaluateRule:
    """Tests for single-rule evaluation."""

    def test_fires(self, evaluator):
        assert [v.rule_id for v in evaluator.evaluate_rule("no-globals", "a global")] == ["no-globals"]

    def test_other_rule_ignored(self, evaluator):
        assert evaluator.evaluate_rule("no-raw-sql", "a global") == []

    def test_unknown_rule(self, evaluator):
        with pytest.raises(UnknownRuleError):
            evaluator.evaluate_rule("no-magic", "a global")

"""
Tests for SkillGraph Pydantic models and result types.
"""

import pytest
from pydantic import ValidationError

from backend.skillgraph.models import (
    AgentPreset,
    EnforcementAction,
    MatchResult,
    RoutingResult,
    Rule,
    Severity,
    Skill,
    TriggerSet,
    Verdict,
)


class TestSkill:
    """Tests for Skill model."""

    def test_valid_skill(self):
        """Test valid skill."""
        skill = Skill(id="scoped-state", domain="backend", version="1.0.0", keywords=["state"])
        assert skill.id == "scoped-state"
        assert skill.dependencies == []
        assert skill.description == ""

    def test_namespaced_id(self):
        """Test a prefix namespace is accepted."""
        skill = Skill(id="rails:scoped-state", domain="backend", version="1.0.0", keywords=[])
        assert skill.id == "rails:scoped-state"

    def test_invalid_id_format(self):
        """Test invalid skill id format."""
        with pytest.raises(ValidationError) as exc_info:
            Skill(id="ScopedState", domain="backend", version="1.0.0", keywords=[])
        assert "kebab-case" in str(exc_info.value)

    def test_invalid_version_format(self):
        """Test invalid version format."""
        with pytest.raises(ValidationError) as exc_info:
            Skill(id="scoped-state", domain="backend", version="1.0", keywords=[])
        assert "semver" in str(exc_info.value)

    def test_prerelease_version(self):
        skill = Skill(id="scoped-state", domain="backend", version="2.0.0-beta.1", keywords=[])
        assert skill.version == "2.0.0-beta.1"

    def test_empty_domain(self):
        with pytest.raises(ValidationError):
            Skill(id="scoped-state", domain="  ", version="1.0.0", keywords=[])

    def test_sets_are_sorted_and_unique(self):
        """Test set-valued fields serialize deterministically."""
        skill = Skill(
            id="widgets",
            domain="ui",
            version="1.0.0",
            keywords=["widget", "component", "widget"],
            dependencies=["layout", "base", "layout"],
        )
        assert skill.keywords == ["component", "widget"]
        assert skill.dependencies == ["base", "layout"]

    def test_required_sections_keep_order(self):
        skill = Skill(
            id="widgets",
            domain="ui",
            version="1.0.0",
            keywords=[],
            required_sections=["when-to-use", "pattern", "when-to-use", "antipatterns"],
        )
        assert skill.required_sections == ["when-to-use", "pattern", "antipatterns"]

    def test_frozen(self):
        """Test records are immutable."""
        skill = Skill(id="widgets", domain="ui", version="1.0.0", keywords=[])
        with pytest.raises(ValidationError):
            skill.domain = "backend"

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            Skill(id="widgets", domain="ui", version="1.0.0", keywords=[], owner="team")


class TestRule:
    """Tests for Rule model."""

    def test_plain_list_means_keywords(self):
        """Test a plain trigger list is read as keywords."""
        rule = Rule(
            id="no-globals",
            name="No Globals",
            severity="critical",
            violation_triggers=["global", "global"],
            enforcement_action="REJECT",
            implementation_skills=["scoped-state"],
        )
        assert rule.violation_triggers == TriggerSet(keywords=["global"])
        assert rule.violation_triggers.patterns == []

    def test_case_insensitive_enums(self):
        rule = Rule(
            id="no-globals",
            name="No Globals",
            severity="CRITICAL",
            violation_triggers={"keywords": ["global"]},
            enforcement_action="reject",
            implementation_skills=[],
        )
        assert rule.severity == Severity.CRITICAL
        assert rule.enforcement_action == EnforcementAction.REJECT

    def test_invalid_action(self):
        with pytest.raises(ValidationError):
            Rule(
                id="no-globals",
                name="No Globals",
                severity="critical",
                violation_triggers=["global"],
                enforcement_action="BLOCK",
                implementation_skills=[],
            )

    def test_severity_rank(self):
        ranks = sorted(Severity, key=lambda s: s.rank)
        assert ranks == [Severity.CRITICAL, Severity.WARNING, Severity.INFORMATIONAL]


class TestAgentPreset:
    """Tests for AgentPreset model."""

    def test_skills_alias(self):
        agent = AgentPreset(id="frontend-dev", skills=["widgets", "layout"])
        assert agent.skill_preset == ["layout", "widgets"]

    def test_field_name(self):
        agent = AgentPreset(id="frontend-dev", skill_preset=["widgets"])
        assert agent.skill_preset == ["widgets"]
        assert agent.model_dump(by_alias=True)["skills"] == ["widgets"]


class TestResultTypes:
    """Tests for transient result dataclasses."""

    def _verdict(self, action):
        return Verdict(
            rule_id="no-globals",
            severity=Severity.CRITICAL,
            enforcement_action=action,
            matched_triggers=["global"],
            remediating_skills=["scoped-state"],
        )

    def test_verdict_blocking(self):
        assert self._verdict(EnforcementAction.REJECT).blocking
        assert not self._verdict(EnforcementAction.SUGGEST).blocking

    def test_verdict_str(self):
        assert str(self._verdict(EnforcementAction.REJECT)) == (
            "[REJECT] no-globals (critical): matched global"
        )

    def test_routing_result_is_list_like(self):
        """Test iteration and len() operate on matches."""
        result = RoutingResult(
            matches=[MatchResult(skill_id="widgets", score=3.0), MatchResult(skill_id="layout", score=1.5)],
            verdicts=[self._verdict(EnforcementAction.REJECT)],
        )
        assert len(result) == 2
        assert [m.skill_id for m in result] == ["widgets", "layout"]
        assert result[0].skill_id == "widgets"
        assert result.skill_ids == ["widgets", "layout"]
        assert result.blocking

    def test_routing_result_to_dict(self):
        result = RoutingResult(matches=[MatchResult(skill_id="widgets", score=1.0)])
        data = result.to_dict()
        assert data["matches"][0]["skill_id"] == "widgets"
        assert data["verdicts"] == []
        assert data["blocking"] is False
        assert data["specialist"] is None

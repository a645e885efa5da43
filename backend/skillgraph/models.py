"""
Data models for SkillGraph.

Registry records (Skill, Rule, AgentPreset) are immutable pydantic models
built once per registry build. Set-valued fields are stored as sorted,
de-duplicated lists so that serialization is deterministic.

Transient results (MatchResult, Verdict, RoutingResult) are plain
dataclasses produced per request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ID_PATTERN = re.compile(r"^(?:[a-z0-9]+(?:-[a-z0-9]+)*:)?[a-z0-9]+(?:-[a-z0-9]+)*$")
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?$")


class Severity(str, Enum):
    """Rule severity levels."""

    INFORMATIONAL = "informational"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return {
            Severity.CRITICAL: 0,
            Severity.WARNING: 1,
            Severity.INFORMATIONAL: 2,
        }[self]


class EnforcementAction(str, Enum):
    """What a caller must do when a rule fires."""

    REJECT = "REJECT"
    SUGGEST = "SUGGEST"


def _check_id(value: str) -> str:
    if not ID_PATTERN.match(value):
        raise ValueError(
            f"'{value}' must be kebab-case (e.g. 'scoped-state' or 'team:scoped-state')"
        )
    return value


def _unique_sorted(values: Any) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    return sorted({str(v) for v in values})


class TriggerSet(BaseModel):
    """Violation triggers of a rule: literal keywords and regex patterns."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    keywords: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)

    @field_validator("keywords", "patterns", mode="before")
    @classmethod
    def _sorted(cls, v: Any) -> List[str]:
        return _unique_sorted(v)

    def is_empty(self) -> bool:
        return not self.keywords and not self.patterns


class Skill(BaseModel):
    """A named, versioned unit of reusable domain guidance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    domain: str
    version: str
    keywords: List[str]
    dependencies: List[str] = Field(default_factory=list)
    enforces_rules: List[str] = Field(default_factory=list)
    required_sections: List[str] = Field(default_factory=list)
    description: str = ""

    @field_validator("id")
    @classmethod
    def _valid_id(cls, v: str) -> str:
        return _check_id(v)

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("domain must not be empty")
        return v.strip()

    @field_validator("version")
    @classmethod
    def _valid_version(cls, v: str) -> str:
        if not SEMVER_PATTERN.match(v):
            raise ValueError(f"version '{v}' must be semver (e.g. 1.0.0)")
        return v

    @field_validator("keywords", "dependencies", "enforces_rules", mode="before")
    @classmethod
    def _sorted(cls, v: Any) -> List[str]:
        return _unique_sorted(v)

    @field_validator("required_sections", mode="before")
    @classmethod
    def _ordered_unique(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        seen: List[str] = []
        for name in v:
            name = str(name).strip()
            if name and name not in seen:
                seen.append(name)
        return seen


class Rule(BaseModel):
    """A governance constraint bound to the skills that remediate it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    name: str
    severity: Severity
    violation_triggers: TriggerSet
    enforcement_action: EnforcementAction
    implementation_skills: List[str]

    @field_validator("id")
    @classmethod
    def _valid_id(cls, v: str) -> str:
        return _check_id(v)

    @field_validator("violation_triggers", mode="before")
    @classmethod
    def _coerce_triggers(cls, v: Any) -> Any:
        # A plain list means keywords only
        if isinstance(v, (list, tuple, set, frozenset)):
            return {"keywords": list(v)}
        if isinstance(v, str):
            return {"keywords": [v]}
        return v

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @field_validator("enforcement_action", mode="before")
    @classmethod
    def _upper_action(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("implementation_skills", mode="before")
    @classmethod
    def _sorted(cls, v: Any) -> List[str]:
        return _unique_sorted(v)


class AgentPreset(BaseModel):
    """A specialist and the skills it is expected to consider."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str
    skill_preset: List[str] = Field(default_factory=list, alias="skills")
    description: str = ""

    @field_validator("skill_preset", mode="before")
    @classmethod
    def _sorted(cls, v: Any) -> List[str]:
        return _unique_sorted(v)


class DocumentKind(str, Enum):
    SKILL = "skill"
    RULE = "rule"
    AGENT = "agent"


@dataclass(frozen=True)
class RawDocument:
    """
    An unparsed source record.

    Attributes:
        kind: Declared record kind (skill, rule or agent).
        data: Field mapping as read from the source.
        source: Where the record came from, used in build errors.
        body: Full text of a skill document, if the skill came from markdown.
    """

    kind: str
    data: Dict[str, Any]
    source: str = "<memory>"
    body: Optional[str] = None


@dataclass
class MatchResult:
    """One ranked skill for a routed task."""

    skill_id: str
    score: float
    matched_keywords: List[str] = field(default_factory=list)
    reason: str = ""
    via: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "score": self.score,
            "matched_keywords": list(self.matched_keywords),
            "reason": self.reason,
            "via": self.via,
        }


@dataclass
class Verdict:
    """Result of evaluating text against one rule's violation triggers."""

    rule_id: str
    severity: Severity
    enforcement_action: EnforcementAction
    matched_triggers: List[str] = field(default_factory=list)
    remediating_skills: List[str] = field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return self.enforcement_action == EnforcementAction.REJECT

    def __str__(self) -> str:
        triggers = ", ".join(self.matched_triggers)
        return (
            f"[{self.enforcement_action.value}] {self.rule_id} "
            f"({self.severity.value}): matched {triggers}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "enforcement_action": self.enforcement_action.value,
            "matched_triggers": list(self.matched_triggers),
            "remediating_skills": list(self.remediating_skills),
        }


@dataclass
class RoutingResult:
    """
    Ranked matches for a task together with the enforcement verdicts
    raised by the same text.

    Iteration, indexing and len() operate on the matches.
    """

    matches: List[MatchResult] = field(default_factory=list)
    verdicts: List[Verdict] = field(default_factory=list)
    specialist: Optional[str] = None

    @property
    def blocking(self) -> bool:
        """True if any REJECT verdict fired."""
        return any(v.blocking for v in self.verdicts)

    @property
    def skill_ids(self) -> List[str]:
        return [m.skill_id for m in self.matches]

    def __iter__(self) -> Iterator[MatchResult]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    def __getitem__(self, index: int) -> MatchResult:
        return self.matches[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "verdicts": [v.to_dict() for v in self.verdicts],
            "specialist": self.specialist,
            "blocking": self.blocking,
        }

"""
Error taxonomy for SkillGraph.

Build errors are fatal and block registry construction. Lookup errors are
recoverable by the caller. Judge errors are captured per judge inside
validation reports and never escape the integration tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class SkillGraphError(Exception):
    """Base exception for SkillGraph."""


@dataclass(frozen=True)
class BuildIssue:
    """A single reason a registry build was rejected."""

    document: str
    field: Optional[str]
    message: str

    def __str__(self) -> str:
        loc = f"{self.document}"
        if self.field:
            loc += f" [{self.field}]"
        return f"{loc}: {self.message}"


class BuildError(SkillGraphError):
    """The document set cannot be built into a consistent registry."""

    def __init__(self, issues: List[BuildIssue]):
        self.issues = list(issues)
        lines = [f"Registry build failed with {len(self.issues)} issue(s):"]
        lines.extend(f"  - {issue}" for issue in self.issues)
        super().__init__("\n".join(lines))

    @classmethod
    def single(cls, document: str, field: Optional[str], message: str) -> "BuildError":
        return cls([BuildIssue(document=document, field=field, message=message)])


class UnknownSkillError(SkillGraphError, KeyError):
    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f"Skill not found: {skill_id}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownRuleError(SkillGraphError, KeyError):
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule not found: {rule_id}")

    def __str__(self) -> str:
        return self.args[0]


class JudgeUnavailableError(SkillGraphError):
    """A judge timed out, failed, or returned an unusable score."""

    def __init__(self, judge: str, detail: str):
        self.judge = judge
        self.detail = detail
        super().__init__(f"Judge '{judge}' unavailable: {detail}")

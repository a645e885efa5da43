"""Validation report types shared by both harness tiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Tier(str, Enum):
    UNIT = "UNIT"
    INTEGRATION = "INTEGRATION"


@dataclass
class Violation:
    """A single failed check. Violations are data, never exceptions."""

    check_name: str
    message: str

    def __str__(self) -> str:
        return f"[{self.check_name}] {self.message}"

    def to_dict(self) -> Dict[str, str]:
        return {"check_name": self.check_name, "message": self.message}


@dataclass
class ValidationReport:
    """
    Outcome of validating one skill.

    Integration-tier reports also carry per-judge scores (None for a judge
    that did not respond), the consensus flag, and summary statistics.
    """

    skill_id: str
    tier: Tier
    passed: bool = True
    violations: List[Violation] = field(default_factory=list)
    judge_scores: Optional[List[Optional[float]]] = None
    consensus: Optional[bool] = None
    mean_score: Optional[float] = None
    spread: Optional[float] = None
    judge_errors: Dict[str, str] = field(default_factory=dict)

    def add_violation(self, check_name: str, message: str) -> None:
        """Record a violation and mark the report as failed."""
        self.violations.append(Violation(check_name=check_name, message=message))
        self.passed = False

    def violations_for(self, check_name: str) -> List[Violation]:
        return [v for v in self.violations if v.check_name == check_name]

    @property
    def responded(self) -> int:
        """Number of judges that returned a usable score."""
        if not self.judge_scores:
            return 0
        return sum(1 for s in self.judge_scores if s is not None)

    @property
    def insufficient_judges(self) -> bool:
        return bool(self.violations_for("insufficient-judges"))

    def summary(self) -> str:
        """Generate a human-readable summary."""
        status = "PASSED" if self.passed else "FAILED"
        lines = [f"{self.tier.value} validation {status}: {self.skill_id}"]
        if self.tier == Tier.INTEGRATION:
            scores = ", ".join("-" if s is None else f"{s:.2f}" for s in self.judge_scores or [])
            lines.append(f"  Judge scores: {scores or 'none'}")
            if self.mean_score is not None:
                lines.append(f"  Mean: {self.mean_score:.2f}  Spread: {self.spread:.2f}")
            lines.append(f"  Consensus: {'yes' if self.consensus else 'no'}")
            for judge, error in sorted(self.judge_errors.items()):
                lines.append(f"  Judge error ({judge}): {error}")
        for violation in self.violations:
            lines.append(f"  - {violation}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data: Dict[str, Any] = {
            "skill_id": self.skill_id,
            "tier": self.tier.value,
            "passed": self.passed,
            "violations": [v.to_dict() for v in self.violations],
        }
        if self.tier == Tier.INTEGRATION:
            data.update({
                "judge_scores": list(self.judge_scores or []),
                "consensus": self.consensus,
                "mean_score": self.mean_score,
                "spread": self.spread,
                "judge_errors": dict(self.judge_errors),
            })
        return data

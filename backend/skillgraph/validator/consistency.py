"""
Registry Consistency Audit.

Checks a built registry for problems that do not block the build:
- Critical rules that only suggest
- Rules without implementation skills
- Skills that routing can never reach
- Skills not offered by any agent preset
- Declared registry metadata that disagrees with the registry
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..logging import get_logger
from ..models import EnforcementAction, Severity
from ..registry import RegistryStore

logger = get_logger(__name__)


@dataclass
class ConsistencyIssue:
    """Represents a consistency issue in the registry."""

    category: str
    source: str
    target: str
    description: str
    severity: str = "error"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.category}: {self.source} -> {self.target}: {self.description}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "source": self.source,
            "target": self.target,
            "description": self.description,
            "severity": self.severity,
        }


@dataclass
class ConsistencyValidationResult:
    """Result of a consistency audit."""

    valid: bool
    issues: List[ConsistencyIssue] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)

    def add_issue(
        self,
        category: str,
        source: str,
        target: str,
        description: str,
        severity: str = "error"
    ) -> None:
        """Add a consistency issue."""
        self.issues.append(ConsistencyIssue(
            category=category,
            source=source,
            target=target,
            description=description,
            severity=severity
        ))
        if severity == "error":
            self.valid = False

    def add_orphan(self, item: str) -> None:
        """Add an orphan skill."""
        self.orphans.append(item)

    @property
    def errors(self) -> List[ConsistencyIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ConsistencyIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def summary(self) -> str:
        status = "PASSED" if self.valid else "FAILED"
        lines = [
            f"Consistency audit {status}: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), {len(self.orphans)} orphan(s)"
        ]
        lines.extend(f"  - {issue}" for issue in self.issues)
        if self.orphans:
            lines.append(f"  Orphans: {', '.join(self.orphans)}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [i.to_dict() for i in self.issues],
            "orphans": list(self.orphans),
        }


class ConsistencyValidator:
    """Audits a built registry."""

    def validate(
        self,
        store: RegistryStore,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ConsistencyValidationResult:
        """
        Audit a registry.

        Args:
            store: The registry to audit.
            metadata: Declared registry metadata (``total_skills`` and
                ``domains``), as read from bundle files.

        Returns:
            ConsistencyValidationResult with issues and orphans.
        """
        result = ConsistencyValidationResult(valid=True)

        self._check_rule_actions(store, result)
        self._check_rule_implementations(store, result)
        self._check_reachability(store, result)
        self._check_orphans(store, result)
        if metadata:
            self._check_metadata(store, metadata, result)

        logger.info(
            "audit_completed",
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
            orphans=len(result.orphans),
        )
        return result

    def _check_rule_actions(self, store: RegistryStore, result: ConsistencyValidationResult) -> None:
        """Critical rules should block, not suggest."""
        for rule in store.all_rules():
            if rule.severity == Severity.CRITICAL and rule.enforcement_action != EnforcementAction.REJECT:
                result.add_issue(
                    "rule_action",
                    rule.id,
                    rule.enforcement_action.value,
                    "critical rule does not REJECT",
                    severity="warning",
                )

    def _check_rule_implementations(self, store: RegistryStore, result: ConsistencyValidationResult) -> None:
        for rule in store.all_rules():
            if not rule.implementation_skills:
                result.add_issue(
                    "rule_implementation",
                    rule.id,
                    "implementation_skills",
                    "rule names no skill that remediates it",
                    severity="warning",
                )

    def _check_reachability(self, store: RegistryStore, result: ConsistencyValidationResult) -> None:
        """A skill without keywords is only reachable as someone's dependency."""
        for skill in store.all_skills():
            if skill.keywords or store.resolver.dependents(skill.id):
                continue
            result.add_issue(
                "unreachable_skill",
                skill.id,
                "keywords",
                "skill has no keywords and no dependents; routing can never select it",
                severity="warning",
            )

    def _check_orphans(self, store: RegistryStore, result: ConsistencyValidationResult) -> None:
        if not store.all_agents():
            return
        offered = {skill_id for agent in store.all_agents() for skill_id in agent.skill_preset}
        for skill in store.all_skills():
            if skill.id not in offered:
                result.add_orphan(skill.id)

    def _check_metadata(
        self,
        store: RegistryStore,
        metadata: Dict[str, Any],
        result: ConsistencyValidationResult,
    ) -> None:
        skills = store.all_skills()
        declared_total = metadata.get("total_skills")
        if declared_total is not None and declared_total != len(skills):
            result.add_issue(
                "metadata",
                "total_skills",
                str(declared_total),
                f"declared {declared_total} skills, registry has {len(skills)}",
            )

        declared_domains = metadata.get("domains")
        if not isinstance(declared_domains, dict):
            return
        actual = Counter(skill.domain for skill in skills)
        for domain in sorted(set(declared_domains) | set(actual)):
            declared = declared_domains.get(domain)
            count = actual.get(domain, 0)
            if declared is None:
                result.add_issue(
                    "metadata",
                    f"domains.{domain}",
                    str(count),
                    f"domain '{domain}' has {count} skill(s) but is not declared",
                )
            elif declared != count:
                result.add_issue(
                    "metadata",
                    f"domains.{domain}",
                    str(declared),
                    f"declared {declared} skill(s), registry has {count}",
                )

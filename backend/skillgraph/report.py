"""
Validation Suite Report.

Collects validation reports for a registry into a machine-consumable
JSON document or a human-readable Markdown summary, with an audit trail.
"""

from __future__ import annotations

import json
import os
import subprocess
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .validator.consistency import ConsistencyValidationResult
from .validator.result import ValidationReport


REPORT_VERSION = "skillgraph-report/1.0"
TOOL_VERSION = __version__


@dataclass
class AuditMetadata:
    """Metadata for audit trail."""

    report_generated_at: str
    tool_version: str
    duration_ms: int
    registry_checksum: Optional[str] = None
    git_commit: Optional[str] = None
    ci_environment: Optional[Dict[str, str]] = None

    @classmethod
    def generate(cls, duration_ms: int, registry_checksum: Optional[str] = None) -> "AuditMetadata":
        """Generate audit metadata."""
        return cls(
            report_generated_at=datetime.now(timezone.utc).isoformat(),
            tool_version=TOOL_VERSION,
            duration_ms=duration_ms,
            registry_checksum=registry_checksum,
            git_commit=_get_git_commit(),
            ci_environment=_get_ci_environment(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {
            "report_generated_at": self.report_generated_at,
            "tool_version": self.tool_version,
            "duration_ms": self.duration_ms,
        }

        if self.registry_checksum:
            result["registry_checksum"] = self.registry_checksum
        if self.git_commit:
            result["git_commit"] = self.git_commit
        if self.ci_environment:
            result["ci_environment"] = self.ci_environment

        return result


@dataclass
class SuiteReport:
    """Validation results for a set of skills."""

    reports: List[ValidationReport]
    audit_metadata: AuditMetadata
    audit: Optional[ConsistencyValidationResult] = None
    report_version: str = REPORT_VERSION

    @property
    def passed(self) -> bool:
        audit_ok = self.audit is None or self.audit.valid
        return audit_ok and all(r.passed for r in self.reports)

    @property
    def failed(self) -> List[ValidationReport]:
        return [r for r in self.reports if not r.passed]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data: Dict[str, Any] = {
            "report_version": self.report_version,
            "passed": self.passed,
            "total": len(self.reports),
            "failed": len(self.failed),
            "reports": [r.to_dict() for r in self.reports],
            "audit_metadata": self.audit_metadata.to_dict(),
        }
        if self.audit is not None:
            data["audit"] = self.audit.to_dict()
        return data

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def to_markdown(self) -> str:
        """Convert to Markdown format report."""
        lines = []
        status = "PASSED" if self.passed else "FAILED"

        lines.append("# Skill Validation Report")
        lines.append("")
        lines.append(f"**Status:** {status}")
        lines.append(f"**Skills:** {len(self.reports)}")
        lines.append(f"**Failed:** {len(self.failed)}")
        lines.append("")

        if self.reports:
            lines.append("## Results")
            lines.append("")
            lines.append("| Skill | Tier | Result | Violations |")
            lines.append("|-------|------|--------|------------|")
            for r in self.reports:
                result = "PASS" if r.passed else "FAIL"
                lines.append(f"| {r.skill_id} | {r.tier.value} | {result} | {len(r.violations)} |")
            lines.append("")

        if self.failed:
            lines.append("## Violations")
            lines.append("")
            for r in self.failed:
                lines.append(f"### {r.skill_id}")
                lines.append("")
                for v in r.violations:
                    lines.append(f"- `{v.check_name}`: {v.message}")
                if r.judge_scores is not None:
                    scores = ", ".join("-" if s is None else f"{s:.2f}" for s in r.judge_scores)
                    lines.append(f"- Judge scores: {scores}")
                lines.append("")

        if self.audit is not None and (self.audit.issues or self.audit.orphans):
            lines.append("## Registry Audit")
            lines.append("")
            for issue in self.audit.issues:
                lines.append(f"- **{issue.severity.upper()}** {issue.category}: "
                             f"{issue.source}: {issue.description}")
            if self.audit.orphans:
                lines.append(f"- Orphan skills: {', '.join(self.audit.orphans)}")
            lines.append("")

        audit = self.audit_metadata.to_dict()
        lines.append("## Audit Information")
        lines.append("")
        lines.append(f"- **Generated:** {audit['report_generated_at']}")
        lines.append(f"- **Tool Version:** {audit['tool_version']}")
        lines.append(f"- **Duration:** {audit['duration_ms']}ms")
        if audit.get("git_commit"):
            lines.append(f"- **Git Commit:** {audit['git_commit']}")
        if audit.get("registry_checksum"):
            lines.append(f"- **Registry Checksum:** {audit['registry_checksum']}")
        lines.append("")

        return "\n".join(lines)

    def save(self, output_path: Path, format: str = "json") -> None:
        """
        Save report to file.

        Args:
            output_path: Path to save the report.
            format: Output format, either 'json' or 'markdown'.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if format == "markdown":
            output_path.write_text(self.to_markdown(), encoding="utf-8")
        else:
            output_path.write_text(self.to_json(), encoding="utf-8")


def generate_suite_report(
    reports: List[ValidationReport],
    duration_ms: int,
    registry_checksum: Optional[str] = None,
    audit: Optional[ConsistencyValidationResult] = None,
) -> SuiteReport:
    """Wrap validation reports with audit metadata."""
    return SuiteReport(
        reports=list(reports),
        audit_metadata=AuditMetadata.generate(duration_ms, registry_checksum),
        audit=audit,
    )


def _get_git_commit() -> Optional[str]:
    """Get current git commit hash if in a git repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]  # Short hash
    except (subprocess.SubprocessError, FileNotFoundError):
        pass
    return None


CI_PROVIDERS = [
    # (marker, provider, build id, branch, triggered by)
    ("GITHUB_ACTIONS", "github_actions", "GITHUB_RUN_ID", "GITHUB_REF_NAME", "GITHUB_ACTOR"),
    ("GITLAB_CI", "gitlab_ci", "CI_JOB_ID", "CI_COMMIT_REF_NAME", "GITLAB_USER_LOGIN"),
    ("JENKINS_URL", "jenkins", "BUILD_NUMBER", "GIT_BRANCH", "BUILD_USER"),
    ("CIRCLECI", "circleci", "CIRCLE_BUILD_NUM", "CIRCLE_BRANCH", "CIRCLE_USERNAME"),
]


def _get_ci_environment() -> Optional[Dict[str, str]]:
    """Detect CI environment from environment variables."""
    for marker, provider, build_id, branch, actor in CI_PROVIDERS:
        if os.getenv(marker):
            return {
                "ci_provider": provider,
                "build_id": os.getenv(build_id, ""),
                "branch": os.getenv(branch, ""),
                "triggered_by": os.getenv(actor, ""),
            }
    return None


class ReportTimer:
    """Context manager for timing validation."""

    def __init__(self):
        self.start_time: float = 0
        self.duration_ms: int = 0

    def __enter__(self) -> "ReportTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.duration_ms = int((time.perf_counter() - self.start_time) * 1000)

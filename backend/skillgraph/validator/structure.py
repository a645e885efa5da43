"""
Structural Validation (unit tier).

Checks a skill document against its skill record without calling any
judge:
- Frontmatter metadata agrees with the record
- Every required section is present
- Patterns have a description and a code example
- Antipatterns pair a bad example with a good one
- Block tags are balanced and code examples are not empty

Every check runs and every violation is collected.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from ..logging import get_logger
from ..models import Skill
from ..registry import RegistryStore
from .document import Block, SkillDocument, code_examples, strip_code
from .result import Tier, ValidationReport

logger = get_logger(__name__)

BAD_MARKER = re.compile(r"❌|\bbad\b|\bwrong\b|\bavoid\b", re.IGNORECASE)
GOOD_MARKER = re.compile(r"✅|\bgood\b|\bcorrect\b|\bprefer\b", re.IGNORECASE)


class StructureValidator:
    """Unit-tier validator for skill documents."""

    def validate_structure(self, skill: Skill, raw_document: Optional[str]) -> ValidationReport:
        """
        Validate one skill document.

        Args:
            skill: The skill record.
            raw_document: Full markdown text, frontmatter included.

        Returns:
            ValidationReport with tier UNIT.
        """
        report = ValidationReport(skill_id=skill.id, tier=Tier.UNIT)

        if raw_document is None or not raw_document.strip():
            report.add_violation("document", f"no skill document for '{skill.id}'")
            return report

        doc = SkillDocument.parse(raw_document)
        self._check_metadata(skill, doc, report)
        self._check_required_sections(skill, doc, report)
        self._check_patterns(doc, report)
        self._check_antipatterns(doc, report)
        self._check_tag_balance(skill, doc, report)
        self._check_code_examples(doc, report)

        logger.debug(
            "structure_validated",
            skill_id=skill.id,
            passed=report.passed,
            violations=len(report.violations),
        )
        return report

    def validate_all(self, store: RegistryStore) -> List[ValidationReport]:
        """Validate every skill in the store, in id order."""
        reports = [
            self.validate_structure(skill, store.get_document(skill.id))
            for skill in store.all_skills()
        ]
        logger.info(
            "structure_validated",
            skills=len(reports),
            failed=sum(1 for r in reports if not r.passed),
        )
        return reports

    def _check_metadata(self, skill: Skill, doc: SkillDocument, report: ValidationReport) -> None:
        meta = doc.frontmatter
        if meta is None:
            report.add_violation("metadata", "missing YAML frontmatter")
            return

        for key in ("name", "description"):
            value = meta.get(key)
            if not isinstance(value, str) or not value.strip():
                report.add_violation("metadata", f"frontmatter '{key}' must be a non-empty string")

        name = meta.get("name")
        if isinstance(name, str) and name.strip() and not _same_id(name.strip(), skill.id):
            report.add_violation(
                "metadata", f"frontmatter name '{name}' does not match skill id '{skill.id}'"
            )

        expected: Dict[str, str] = {"domain": skill.domain, "version": skill.version}
        for key, value in expected.items():
            if key in meta and str(meta[key]) != value:
                report.add_violation(
                    "metadata", f"frontmatter {key} '{meta[key]}' does not match record '{value}'"
                )

    def _check_required_sections(
        self, skill: Skill, doc: SkillDocument, report: ValidationReport
    ) -> None:
        for section in skill.required_sections:
            if not doc.has_section(section):
                report.add_violation("required-sections", f"missing section '{section}'")

    def _check_patterns(self, doc: SkillDocument, report: ValidationReport) -> None:
        for entry in doc.pattern_entries():
            if not _prose(entry):
                report.add_violation("pattern", f"{entry.label} has no description")
            if not any(body.strip() for body in code_examples(entry.content)):
                report.add_violation("pattern", f"{entry.label} has no code example")

    def _check_antipatterns(self, doc: SkillDocument, report: ValidationReport) -> None:
        for entry in doc.antipattern_entries():
            text = entry.title + "\n" + entry.content
            if not BAD_MARKER.search(text):
                report.add_violation("antipatterns", f"{entry.label} has no bad example")
            if not GOOD_MARKER.search(text):
                report.add_violation("antipatterns", f"{entry.label} has no good example")

    def _check_tag_balance(self, skill: Skill, doc: SkillDocument, report: ValidationReport) -> None:
        # Unclosed tags that are never closed anywhere (e.g. <br>) are markup,
        # not blocks, unless they name a required section.
        required = set(skill.required_sections)
        for tag, (opened, closed) in sorted(doc.tag_counts.items()):
            if closed == 0 and tag not in required:
                continue
            if opened != closed:
                report.add_violation(
                    "tag-balance",
                    f"<{tag}> opened {opened} time(s) but closed {closed} time(s)",
                )

    def _check_code_examples(self, doc: SkillDocument, report: ValidationReport) -> None:
        empty = sum(1 for body in doc.code_examples() if not body.strip())
        if empty:
            report.add_violation("code-examples", f"{empty} empty code block(s)")


def _same_id(name: str, skill_id: str) -> bool:
    if name == skill_id:
        return True
    return name.split(":", 1)[-1] == skill_id.split(":", 1)[-1]


def _prose(block: Block) -> str:
    text = strip_code(block.content)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"^#{1,6}\s.*$", "", text, flags=re.MULTILINE)
    return text.strip()


def validate_structure(skill: Skill, raw_document: Optional[str]) -> ValidationReport:
    """Convenience wrapper around :meth:`StructureValidator.validate_structure`."""
    return StructureValidator().validate_structure(skill, raw_document)

"""
SkillGraph Validation Harness.

- Unit tier: structural checks of skill documents (no judges, no I/O)
- Integration tier: judged scoring of artifacts with consensus
- Consistency audit: non-fatal registry checks
"""

from .result import Tier, ValidationReport, Violation
from .document import Block, SkillDocument, normalize_section_name
from .structure import StructureValidator, validate_structure
from .judges import (
    CommandJudge,
    FunctionJudge,
    Judge,
    StubJudge,
    as_judge,
    parse_score,
)
from .integration import IntegrationValidator
from .consistency import (
    ConsistencyIssue,
    ConsistencyValidationResult,
    ConsistencyValidator,
)

__all__ = [
    # Reports
    "Tier",
    "ValidationReport",
    "Violation",
    # Documents
    "Block",
    "SkillDocument",
    "normalize_section_name",
    # Unit tier
    "StructureValidator",
    "validate_structure",
    # Judges
    "Judge",
    "FunctionJudge",
    "StubJudge",
    "CommandJudge",
    "as_judge",
    "parse_score",
    # Integration tier
    "IntegrationValidator",
    # Consistency
    "ConsistencyValidator",
    "ConsistencyValidationResult",
    "ConsistencyIssue",
]

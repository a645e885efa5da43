"""
SkillGraph: skill resolution and enforcement engine.

This package provides a registry of skills, rules and agent presets, a
task router that ranks skills for free-text tasks, a rule evaluator that
returns REJECT/SUGGEST verdicts, and a two-tier validation harness.
"""

__version__ = "1.0.0"

from .errors import (
    BuildError,
    BuildIssue,
    JudgeUnavailableError,
    SkillGraphError,
    UnknownRuleError,
    UnknownSkillError,
)
from .models import (
    AgentPreset,
    DocumentKind,
    EnforcementAction,
    MatchResult,
    RawDocument,
    RoutingResult,
    Rule,
    Severity,
    Skill,
    TriggerSet,
    Verdict,
)
from .registry import RegistryHolder, RegistryStore, build_registry
from .resolver import DependencyResolver
from .index import KeywordIndex, normalize, tokenize
from .enforcement import RuleEvaluator, has_blocking
from .router import TaskRouter
from .loader import load_documents, load_registry

__all__ = [
    "__version__",
    # Errors
    "SkillGraphError",
    "BuildError",
    "BuildIssue",
    "UnknownSkillError",
    "UnknownRuleError",
    "JudgeUnavailableError",
    # Models
    "Skill",
    "Rule",
    "TriggerSet",
    "AgentPreset",
    "Severity",
    "EnforcementAction",
    "DocumentKind",
    "RawDocument",
    "MatchResult",
    "Verdict",
    "RoutingResult",
    # Registry
    "RegistryStore",
    "RegistryHolder",
    "build_registry",
    "DependencyResolver",
    "KeywordIndex",
    "normalize",
    "tokenize",
    # Resolution and enforcement
    "TaskRouter",
    "RuleEvaluator",
    "has_blocking",
    # Loading
    "load_documents",
    "load_registry",
]

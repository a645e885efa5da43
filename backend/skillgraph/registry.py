"""
Registry Store.

Builds an immutable index of Skill, Rule and AgentPreset records from a
set of source documents. A build either produces a fully consistent store
or raises a BuildError listing every problem found; there is no partial
registry.
"""

from __future__ import annotations

import hashlib
import re
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type

import yaml
from pydantic import BaseModel, ValidationError

from .errors import BuildError, BuildIssue, SkillGraphError, UnknownRuleError, UnknownSkillError
from .index import KeywordIndex
from .logging import get_logger
from .models import AgentPreset, DocumentKind, RawDocument, Rule, Skill
from .resolver import DependencyResolver

logger = get_logger(__name__)


REQUIRED_FIELDS: Dict[DocumentKind, Tuple[str, ...]] = {
    DocumentKind.SKILL: ("id", "domain", "version", "keywords"),
    DocumentKind.RULE: (
        "id",
        "name",
        "severity",
        "violation_triggers",
        "enforcement_action",
        "implementation_skills",
    ),
    DocumentKind.AGENT: ("id",),
}

MODELS: Dict[DocumentKind, Type[BaseModel]] = {
    DocumentKind.SKILL: Skill,
    DocumentKind.RULE: Rule,
    DocumentKind.AGENT: AgentPreset,
}

_WHITE, _GREY, _BLACK = 0, 1, 2


def _label(doc: RawDocument) -> str:
    record_id = doc.data.get("id") if isinstance(doc.data, dict) else None
    if record_id:
        return f"{doc.source} ({doc.kind} '{record_id}')"
    return f"{doc.source} ({doc.kind})"


class _BuildContext:
    """Collects issues while a build is in progress."""

    def __init__(self) -> None:
        self.issues: List[BuildIssue] = []
        self.sources: Dict[Tuple[DocumentKind, str], str] = {}

    def add(self, document: str, field: Optional[str], message: str) -> None:
        self.issues.append(BuildIssue(document=document, field=field, message=message))

    def source_of(self, kind: DocumentKind, record_id: str) -> str:
        return self.sources.get((kind, record_id), f"<{kind.value} '{record_id}'>")


class RegistryStore:
    """
    Immutable registry of skills, rules and agent presets.

    Use :meth:`build` to construct one. Once built, a store and its derived
    indices are safe for concurrent reads.
    """

    def __init__(
        self,
        skills: Dict[str, Skill],
        rules: Dict[str, Rule],
        agents: Dict[str, AgentPreset],
        documents: Optional[Dict[str, str]] = None,
    ):
        self._skills: Mapping[str, Skill] = MappingProxyType(dict(sorted(skills.items())))
        self._rules: Mapping[str, Rule] = MappingProxyType(dict(sorted(rules.items())))
        self._agents: Mapping[str, AgentPreset] = MappingProxyType(dict(sorted(agents.items())))
        self._documents: Mapping[str, str] = MappingProxyType(dict(documents or {}))
        self.resolver = DependencyResolver(self._skills)
        self.index = KeywordIndex(self._skills.values(), self._rules.values())

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    @classmethod
    def build(cls, documents: Iterable[RawDocument]) -> "RegistryStore":
        """
        Build a registry from source documents.

        Args:
            documents: Skill, rule and agent documents.

        Returns:
            A consistent RegistryStore.

        Raises:
            BuildError: On any missing field, dangling reference, broken
                rule/skill binding, invalid pattern or dependency cycle.
        """
        ctx = _BuildContext()
        skills: Dict[str, Skill] = {}
        rules: Dict[str, Rule] = {}
        agents: Dict[str, AgentPreset] = {}
        bodies: Dict[str, str] = {}
        targets: Dict[DocumentKind, Dict[str, Any]] = {
            DocumentKind.SKILL: skills,
            DocumentKind.RULE: rules,
            DocumentKind.AGENT: agents,
        }

        documents = list(documents)
        for doc in documents:
            parsed = cls._parse(doc, ctx)
            if parsed is None:
                continue
            kind, record = parsed
            bucket = targets[kind]
            if record.id in bucket:
                ctx.add(
                    _label(doc),
                    "id",
                    f"duplicate {kind.value} id '{record.id}' "
                    f"(first defined in {ctx.source_of(kind, record.id)})",
                )
                continue
            bucket[record.id] = record
            ctx.sources[(kind, record.id)] = doc.source
            if kind == DocumentKind.SKILL and doc.body is not None:
                bodies[record.id] = doc.body

        cls._check_references(skills, rules, agents, ctx)
        cls._check_bindings(skills, rules, ctx)
        cls._check_patterns(rules, ctx)
        cls._check_cycles(skills, ctx)

        if ctx.issues:
            logger.error(
                "registry_build_failed",
                documents=len(documents),
                issues=len(ctx.issues),
            )
            raise BuildError(ctx.issues)

        store = cls(skills, rules, agents, bodies)
        logger.info(
            "registry_built",
            skills=len(skills),
            rules=len(rules),
            agents=len(agents),
        )
        return store

    @staticmethod
    def _parse(doc: RawDocument, ctx: _BuildContext) -> Optional[Tuple[DocumentKind, Any]]:
        label = _label(doc)
        try:
            kind = DocumentKind(str(doc.kind).lower())
        except ValueError:
            ctx.add(label, "kind", f"unknown document kind '{doc.kind}'")
            return None

        if not isinstance(doc.data, dict):
            ctx.add(label, None, "document must be a mapping of fields")
            return None

        missing = [f for f in REQUIRED_FIELDS[kind] if doc.data.get(f) is None]
        if kind == DocumentKind.AGENT and "skills" not in doc.data and "skill_preset" not in doc.data:
            missing.append("skills")
        for field_name in missing:
            ctx.add(label, field_name, "missing required field")
        if missing:
            return None

        try:
            record = MODELS[kind].model_validate(doc.data)
        except ValidationError as e:
            for err in e.errors():
                loc = ".".join(str(part) for part in err.get("loc", ())) or None
                ctx.add(label, loc, err.get("msg", "invalid value"))
            return None
        return kind, record

    @staticmethod
    def _check_references(
        skills: Dict[str, Skill],
        rules: Dict[str, Rule],
        agents: Dict[str, AgentPreset],
        ctx: _BuildContext,
    ) -> None:
        for skill in skills.values():
            source = ctx.source_of(DocumentKind.SKILL, skill.id)
            for dep in skill.dependencies:
                if dep not in skills:
                    ctx.add(source, "dependencies", f"unknown skill '{dep}'")
            for rule_id in skill.enforces_rules:
                if rule_id not in rules:
                    ctx.add(source, "enforces_rules", f"unknown rule '{rule_id}'")

        for rule in rules.values():
            source = ctx.source_of(DocumentKind.RULE, rule.id)
            for skill_id in rule.implementation_skills:
                if skill_id not in skills:
                    ctx.add(source, "implementation_skills", f"unknown skill '{skill_id}'")

        for agent in agents.values():
            source = ctx.source_of(DocumentKind.AGENT, agent.id)
            for skill_id in agent.skill_preset:
                if skill_id not in skills:
                    ctx.add(source, "skills", f"unknown skill '{skill_id}'")

    @staticmethod
    def _check_bindings(
        skills: Dict[str, Skill],
        rules: Dict[str, Rule],
        ctx: _BuildContext,
    ) -> None:
        """Both directions of the rule/skill binding must agree."""
        for rule in rules.values():
            for skill_id in rule.implementation_skills:
                skill = skills.get(skill_id)
                if skill is not None and rule.id not in skill.enforces_rules:
                    ctx.add(
                        ctx.source_of(DocumentKind.RULE, rule.id),
                        "implementation_skills",
                        f"skill '{skill_id}' does not list rule '{rule.id}' in enforces_rules",
                    )

        for skill in skills.values():
            for rule_id in skill.enforces_rules:
                rule = rules.get(rule_id)
                if rule is not None and skill.id not in rule.implementation_skills:
                    ctx.add(
                        ctx.source_of(DocumentKind.SKILL, skill.id),
                        "enforces_rules",
                        f"rule '{rule_id}' does not list skill '{skill.id}' in implementation_skills",
                    )

    @staticmethod
    def _check_patterns(rules: Dict[str, Rule], ctx: _BuildContext) -> None:
        for rule in rules.values():
            if rule.violation_triggers.is_empty():
                ctx.add(
                    ctx.source_of(DocumentKind.RULE, rule.id),
                    "violation_triggers",
                    "rule declares no keywords or patterns",
                )
            for pattern in rule.violation_triggers.patterns:
                try:
                    re.compile(pattern)
                except re.error as e:
                    ctx.add(
                        ctx.source_of(DocumentKind.RULE, rule.id),
                        "violation_triggers.patterns",
                        f"invalid pattern '{pattern}': {e}",
                    )

    @staticmethod
    def _check_cycles(skills: Dict[str, Skill], ctx: _BuildContext) -> None:
        """Three-colour depth-first search over dependency edges, without recursion."""
        color = {skill_id: _WHITE for skill_id in skills}
        reported = set()

        for root in sorted(skills):
            if color[root] != _WHITE:
                continue
            color[root] = _GREY
            path: List[str] = [root]
            stack = [iter(skills[root].dependencies)]
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    color[path.pop()] = _BLACK
                    continue
                if dep not in skills:
                    continue
                if color[dep] == _GREY:
                    cycle = path[path.index(dep):] + [dep]
                    key = frozenset(cycle)
                    if key not in reported:
                        reported.add(key)
                        ctx.add(
                            ctx.source_of(DocumentKind.SKILL, dep),
                            "dependencies",
                            "dependency cycle: " + " -> ".join(cycle),
                        )
                elif color[dep] == _WHITE:
                    color[dep] = _GREY
                    path.append(dep)
                    stack.append(iter(skills[dep].dependencies))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_skill(self, skill_id: str) -> Skill:
        skill = self._skills.get(skill_id)
        if skill is None:
            raise UnknownSkillError(skill_id)
        return skill

    def get_rule(self, rule_id: str) -> Rule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise UnknownRuleError(rule_id)
        return rule

    def find_skill(self, skill_id: str) -> Optional[Skill]:
        return self._skills.get(skill_id)

    def find_rule(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def get_agent(self, agent_id: str) -> Optional[AgentPreset]:
        return self._agents.get(agent_id)

    def all_skills(self) -> List[Skill]:
        return list(self._skills.values())

    def all_rules(self) -> List[Rule]:
        return list(self._rules.values())

    def all_agents(self) -> List[AgentPreset]:
        return list(self._agents.values())

    def get_document(self, skill_id: str) -> Optional[str]:
        """Raw skill document text, if the skill was loaded from one."""
        if skill_id not in self._skills:
            raise UnknownSkillError(skill_id)
        return self._documents.get(skill_id)

    def closure(self, skill_id: str) -> List[str]:
        return self.resolver.closure(skill_id)

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._skills

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegistryStore):
            return NotImplemented
        return (
            dict(self._skills) == dict(other._skills)
            and dict(self._rules) == dict(other._rules)
            and dict(self._agents) == dict(other._agents)
        )

    __hash__ = None  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Bundle form: skills, rules and agents as plain data."""
        return {
            "skills": [s.model_dump(mode="json") for s in self._skills.values()],
            "rules": [r.model_dump(mode="json") for r in self._rules.values()],
            "agents": [a.model_dump(mode="json", by_alias=True) for a in self._agents.values()],
        }

    def to_documents(self) -> List[RawDocument]:
        """Documents that rebuild an equal store."""
        data = self.to_dict()
        docs: List[RawDocument] = []
        for item in data["skills"]:
            docs.append(RawDocument(
                kind=DocumentKind.SKILL.value,
                data=item,
                source=f"<skill '{item['id']}'>",
                body=self._documents.get(item["id"]),
            ))
        for item in data["rules"]:
            docs.append(RawDocument(
                kind=DocumentKind.RULE.value,
                data=item,
                source=f"<rule '{item['id']}'>",
            ))
        for item in data["agents"]:
            docs.append(RawDocument(
                kind=DocumentKind.AGENT.value,
                data=item,
                source=f"<agent '{item['id']}'>",
            ))
        return docs

    def dump_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)

    def checksum(self) -> str:
        """SHA-256 of the serialized registry."""
        return hashlib.sha256(self.dump_yaml().encode("utf-8")).hexdigest()


def build_registry(documents: Iterable[RawDocument]) -> RegistryStore:
    """Convenience wrapper around :meth:`RegistryStore.build`."""
    return RegistryStore.build(documents)


class RegistryHolder:
    """
    Holds the current registry and swaps in rebuilt ones atomically.

    Readers should take :attr:`current` once per request and use that
    snapshot throughout; a concurrent rebuild never affects it.
    """

    def __init__(self, store: Optional[RegistryStore] = None):
        self._store = store
        self._lock = threading.Lock()
        self._generation = 0 if store is None else 1

    @property
    def current(self) -> RegistryStore:
        store = self._store
        if store is None:
            raise SkillGraphError("Registry has not been built")
        return store

    @property
    def generation(self) -> int:
        return self._generation

    def rebuild(self, documents: Iterable[RawDocument]) -> RegistryStore:
        """
        Build a new store and swap it in.

        On BuildError the previous store stays current and the error
        propagates.
        """
        store = RegistryStore.build(documents)
        return self.swap(store)

    def swap(self, store: RegistryStore) -> RegistryStore:
        with self._lock:
            self._store = store
            self._generation += 1
            generation = self._generation
        logger.info("registry_swapped", generation=generation, skills=len(store))
        return store

"""
Keyword/Trigger Index.

Inverted maps from normalized keyword to skill ids and from normalized
violation trigger to rule ids, built once per registry build. Keywords may
be phrases; lookups over free text scan n-grams up to the longest phrase.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Pattern, Set, Tuple

from .models import Rule, Skill


_PUNCTUATION = re.compile(r"[^\w\s]|_", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")

EMPTY: FrozenSet[str] = frozenset()


def normalize(term: Any) -> str:
    """
    Normalize a keyword or text fragment.

    Lowercases, replaces punctuation with spaces and collapses whitespace.
    Anything that is not a string normalizes to an empty string.
    """
    if not isinstance(term, str):
        return ""
    text = _PUNCTUATION.sub(" ", term.lower())
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: Any) -> List[str]:
    """Split text into normalized terms."""
    normalized = normalize(text)
    return normalized.split(" ") if normalized else []


def ngrams(tokens: List[str], max_len: int) -> Iterable[str]:
    """Yield every contiguous phrase of 1..max_len tokens."""
    for size in range(1, max_len + 1):
        for start in range(0, len(tokens) - size + 1):
            yield " ".join(tokens[start:start + size])


def _freeze(mapping: Dict[str, Set[str]]) -> Mapping[str, FrozenSet[str]]:
    return MappingProxyType({k: frozenset(v) for k, v in mapping.items()})


class KeywordIndex:
    """
    Inverted keyword index over a built registry.

    The index is immutable once constructed and safe to share across
    threads.
    """

    def __init__(self, skills: Iterable[Skill], rules: Iterable[Rule]):
        skill_map: Dict[str, Set[str]] = {}
        rule_map: Dict[str, Set[str]] = {}
        patterns: List[Tuple[str, str, Pattern]] = []

        for skill in skills:
            for keyword in skill.keywords:
                key = normalize(keyword)
                if key:
                    skill_map.setdefault(key, set()).add(skill.id)

        for rule in rules:
            for keyword in rule.violation_triggers.keywords:
                key = normalize(keyword)
                if key:
                    rule_map.setdefault(key, set()).add(rule.id)
            for pattern in rule.violation_triggers.patterns:
                patterns.append((rule.id, pattern, re.compile(pattern, re.IGNORECASE)))

        self._skills = _freeze(skill_map)
        self._rules = _freeze(rule_map)
        self._patterns: Tuple[Tuple[str, str, Pattern], ...] = tuple(patterns)
        self._max_skill_phrase = max((len(k.split(" ")) for k in skill_map), default=1)
        self._max_rule_phrase = max((len(k.split(" ")) for k in rule_map), default=1)

    @property
    def skill_keywords(self) -> Mapping[str, FrozenSet[str]]:
        return self._skills

    @property
    def rule_triggers(self) -> Mapping[str, FrozenSet[str]]:
        return self._rules

    def lookup_skills(self, term: Any) -> FrozenSet[str]:
        """Skill ids indexed under a term."""
        return self._skills.get(normalize(term), EMPTY)

    def lookup_rules(self, term: Any) -> FrozenSet[str]:
        """Rule ids whose literal triggers include a term."""
        return self._rules.get(normalize(term), EMPTY)

    def match_skills(self, text: Any) -> Dict[str, Set[str]]:
        """Map each skill id to the normalized keywords found in text."""
        return self._scan(tokenize(text), self._skills, self._max_skill_phrase)

    def match_rules(self, text: Any) -> Dict[str, Set[str]]:
        """Map each rule id to the literal triggers found in text."""
        return self._scan(tokenize(text), self._rules, self._max_rule_phrase)

    def match_patterns(self, text: Any) -> Dict[str, Set[str]]:
        """Map each rule id to the pattern triggers that match text."""
        found: Dict[str, Set[str]] = {}
        if not isinstance(text, str) or not text:
            return found
        for rule_id, source, compiled in self._patterns:
            if compiled.search(text):
                found.setdefault(rule_id, set()).add(source)
        return found

    @staticmethod
    def _scan(
        tokens: List[str],
        mapping: Mapping[str, FrozenSet[str]],
        max_len: int,
    ) -> Dict[str, Set[str]]:
        found: Dict[str, Set[str]] = {}
        for phrase in ngrams(tokens, max_len):
            for owner in mapping.get(phrase, EMPTY):
                found.setdefault(owner, set()).add(phrase)
        return found

    def contains_phrase(self, text: Any, phrase: Any) -> bool:
        """True if the normalized phrase occurs as whole tokens in text."""
        target = normalize(phrase)
        if not target:
            return False
        tokens = tokenize(text)
        return target in set(ngrams(tokens, len(target.split(" "))))

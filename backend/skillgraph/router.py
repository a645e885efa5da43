"""
Task Router.

Maps a free-text task description to a ranked list of skills and a
recommended specialist. Enforcement verdicts for the same text always
travel with the ranking.

Scoring:
    direct score  = keyword_weight * distinct matched keywords
                    + domain_weight if the skill's domain appears in the text
    dependency    = dependency_discount * parent direct score
    final score   = max over direct and dependency contributions

Ranking puts every direct match ahead of skills reached only as a
dependency, then orders each group by score and skill id. A discounted
dependency therefore never outranks a skill the text matched itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .config import Settings, get_settings
from .enforcement import RuleEvaluator
from .index import tokenize
from .logging import get_logger
from .models import MatchResult, RoutingResult
from .registry import RegistryStore

logger = get_logger(__name__)


@dataclass
class _Candidate:
    skill_id: str
    score: float = 0.0
    matched_keywords: Set[str] = field(default_factory=set)
    reasons: List[str] = field(default_factory=list)
    via: Optional[str] = None
    direct: bool = False


class TaskRouter:
    """Ranks skills for a task over a registry snapshot."""

    def __init__(
        self,
        store: RegistryStore,
        settings: Optional[Settings] = None,
        keyword_weight: Optional[float] = None,
        domain_weight: Optional[float] = None,
        dependency_discount: Optional[float] = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.evaluator = RuleEvaluator(store)
        self.keyword_weight = settings.keyword_weight if keyword_weight is None else keyword_weight
        self.domain_weight = settings.domain_weight if domain_weight is None else domain_weight
        self.dependency_discount = (
            settings.dependency_discount if dependency_discount is None else dependency_discount
        )
        self.default_top_k = settings.default_top_k

    def route(self, task_text: Any, top_k: Optional[int] = None) -> RoutingResult:
        """
        Rank skills for a task.

        Args:
            task_text: Free-text task description.
            top_k: Maximum number of matches; defaults to settings.

        Returns:
            RoutingResult with at most top_k unique matches and every
            enforcement verdict raised by the text.
        """
        top_k = self.default_top_k if top_k is None else top_k
        verdicts = self.evaluator.evaluate(task_text)

        candidates = self._direct_candidates(task_text)
        self._expand_dependencies(candidates)

        ranked = sorted(candidates.values(), key=lambda c: (not c.direct, -c.score, c.skill_id))
        matches = [
            MatchResult(
                skill_id=c.skill_id,
                score=c.score,
                matched_keywords=sorted(c.matched_keywords),
                reason="; ".join(c.reasons),
                via=c.via,
            )
            for c in ranked[:max(top_k, 0)]
        ]

        result = RoutingResult(
            matches=matches,
            verdicts=verdicts,
            specialist=self.recommend_specialist(matches),
        )
        logger.debug(
            "route_completed",
            matches=len(matches),
            candidates=len(candidates),
            verdicts=len(verdicts),
            specialist=result.specialist,
        )
        return result

    def _direct_candidates(self, task_text: Any) -> Dict[str, _Candidate]:
        index = self.store.index
        hits = index.match_skills(task_text)
        tokens = tokenize(task_text)
        candidates: Dict[str, _Candidate] = {}

        for skill_id, keywords in hits.items():
            skill = self.store.get_skill(skill_id)
            cand = _Candidate(skill_id=skill_id, matched_keywords=set(keywords), direct=True)
            cand.score = self.keyword_weight * len(keywords)
            cand.reasons.append("keywords: " + ", ".join(sorted(keywords)))
            if tokens and index.contains_phrase(task_text, skill.domain):
                cand.score += self.domain_weight
                cand.reasons.append(f"domain '{skill.domain}' mentioned")
            candidates[skill_id] = cand
        return candidates

    def _expand_dependencies(self, candidates: Dict[str, _Candidate]) -> None:
        direct = sorted(
            ((c.skill_id, c.score) for c in candidates.values()),
            key=lambda item: (-item[1], item[0]),
        )
        for parent_id, parent_score in direct:
            discounted = parent_score * self.dependency_discount
            for dep_id in self.store.resolver.dependencies_of(parent_id):
                existing = candidates.get(dep_id)
                if existing is None:
                    candidates[dep_id] = _Candidate(
                        skill_id=dep_id,
                        score=discounted,
                        reasons=[f"dependency of '{parent_id}'"],
                        via=parent_id,
                    )
                elif discounted > existing.score:
                    existing.score = discounted
                    existing.reasons.append(f"dependency of '{parent_id}'")
                    existing.via = parent_id

    def recommend_specialist(self, matches: List[MatchResult]) -> Optional[str]:
        """
        Pick the agent preset covering the most match score.

        Returns None when no preset includes any matched skill.
        """
        scores = {m.skill_id: m.score for m in matches}
        best: Optional[str] = None
        best_score = 0.0
        for agent in self.store.all_agents():
            total = sum(scores.get(skill_id, 0.0) for skill_id in agent.skill_preset)
            if total > best_score:
                best, best_score = agent.id, total
        return best


def route(store: RegistryStore, task_text: Any, top_k: Optional[int] = None) -> RoutingResult:
    """Convenience wrapper around :meth:`TaskRouter.route`."""
    return TaskRouter(store).route(task_text, top_k)

"""
Dependency Resolver.

Expands a skill's declared dependencies into a closed set ordered so that
every dependency precedes the skills that need it.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .errors import UnknownSkillError
from .models import Skill


class DependencyResolver:
    """
    Precomputes the dependency closure of every skill in a registry.

    The dependency graph must already be known to be acyclic; the
    registry build guarantees this before a resolver is created.
    """

    def __init__(self, skills: Mapping[str, Skill]):
        self._skills = skills
        closures: Dict[str, Tuple[str, ...]] = {}
        for skill_id in sorted(skills):
            closures[skill_id] = tuple(self._compute(skill_id))
        self._closures = MappingProxyType(closures)

        dependents: Dict[str, List[str]] = {skill_id: [] for skill_id in skills}
        for skill in skills.values():
            for dep in skill.dependencies:
                if dep in dependents:
                    dependents[dep].append(skill.id)
        self._dependents = MappingProxyType(
            {k: tuple(sorted(v)) for k, v in dependents.items()}
        )

    def _compute(self, skill_id: str) -> List[str]:
        # Iterative postorder walk.
        order: List[str] = []
        seen = {skill_id}
        stack = [(skill_id, iter(sorted(self._skills[skill_id].dependencies)))]
        while stack:
            current, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                order.append(current)
            elif dep not in seen:
                seen.add(dep)
                stack.append((dep, iter(sorted(self._skills[dep].dependencies))))
        return order

    def closure(self, skill_id: str) -> List[str]:
        """
        Return the transitive dependencies of a skill followed by the skill.

        Args:
            skill_id: Skill to expand.

        Returns:
            Skill ids in an order safe to apply incrementally.

        Raises:
            UnknownSkillError: If the skill does not exist.
        """
        if skill_id not in self._closures:
            raise UnknownSkillError(skill_id)
        return list(self._closures[skill_id])

    def dependencies_of(self, skill_id: str) -> List[str]:
        """Transitive dependencies only, without the skill itself."""
        return self.closure(skill_id)[:-1]

    def dependents(self, skill_id: str) -> List[str]:
        """Skills that directly depend on the given skill."""
        if skill_id not in self._dependents:
            raise UnknownSkillError(skill_id)
        return list(self._dependents[skill_id])

    def depth(self, skill_id: str, dependency_id: str) -> int:
        """
        Shortest number of dependency edges from a skill to a dependency.

        Returns 0 for the skill itself and -1 if it is not a dependency.
        """
        if skill_id not in self._skills:
            raise UnknownSkillError(skill_id)
        frontier = [skill_id]
        visited = {skill_id}
        level = 0
        while frontier:
            if dependency_id in frontier:
                return level
            next_frontier = []
            for current in frontier:
                for dep in self._skills[current].dependencies:
                    if dep not in visited:
                        visited.add(dep)
                        next_frontier.append(dep)
            frontier = next_frontier
            level += 1
        return -1

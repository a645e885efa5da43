"""
Judged Validation (integration tier).

Asks several independent judges to score how well an artifact applies a
skill and requires both quality (mean score at or above the threshold)
and consensus (sample standard deviation within the tolerance).

Judges run concurrently. Each call has its own timeout, and the number of
judge calls in flight across all invocations on one validator is bounded
by a semaphore. The bound holds per event loop, so threads that each call
validate_usage_sync get independent bounds. A deadline or cancel event
stops outstanding calls for a single invocation without affecting others.
"""

from __future__ import annotations

import asyncio
import math
import statistics
import threading
import weakref
from numbers import Real
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config import Settings, get_settings
from ..errors import JudgeUnavailableError
from ..logging import get_logger
from ..models import Skill
from .judges import MAX_SCORE, Judge, as_judge
from .result import Tier, ValidationReport

logger = get_logger(__name__)

JudgeLike = Union[Judge, Callable[..., Any]]


def _coerce_score(judge: str, raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, Real):
        raise JudgeUnavailableError(judge, f"non-numeric score {raw!r}")
    value = float(raw)
    if math.isnan(value) or not 0.0 <= value <= MAX_SCORE:
        raise JudgeUnavailableError(judge, f"score {raw!r} outside 0-{MAX_SCORE:g}")
    return value


def _judge_names(judges: Sequence[Judge]) -> List[str]:
    names = [j.name for j in judges]
    return [
        f"{name}#{i}" if names.count(name) > 1 else name
        for i, name in enumerate(names)
    ]


class IntegrationValidator:
    """
    Integration-tier validator.

    Args:
        settings: Source of defaults for the keyword overrides below.
        threshold: Minimum mean score to pass.
        tolerance: Maximum sample standard deviation to pass.
        judge_timeout: Seconds allowed per judge call.
        min_judges: Minimum number of judges that must respond.
        max_concurrent: Bound on judge calls in flight per event loop.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        threshold: Optional[float] = None,
        tolerance: Optional[float] = None,
        judge_timeout: Optional[float] = None,
        min_judges: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ):
        settings = settings or get_settings()
        self.threshold = settings.judge_threshold if threshold is None else threshold
        self.tolerance = settings.judge_tolerance if tolerance is None else tolerance
        self.judge_timeout = settings.judge_timeout if judge_timeout is None else judge_timeout
        self.min_judges = settings.min_judges if min_judges is None else min_judges
        self.max_concurrent = (
            settings.max_concurrent_judges if max_concurrent is None else max_concurrent
        )
        self._sems: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = (
            weakref.WeakKeyDictionary()
        )
        self._sems_lock = threading.Lock()

    def _semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        with self._sems_lock:
            sem = self._sems.get(loop)
            if sem is None:
                sem = self._sems[loop] = asyncio.Semaphore(self.max_concurrent)
            return sem

    async def _run_judge(self, judge: Judge, name: str, skill: Skill, artifact: str) -> float:
        async with self._semaphore():
            try:
                raw = await asyncio.wait_for(judge.score(skill, artifact), timeout=self.judge_timeout)
            except asyncio.TimeoutError:
                raise JudgeUnavailableError(name, f"timed out after {self.judge_timeout:g}s")
            except JudgeUnavailableError as e:
                raise JudgeUnavailableError(name, e.detail) from e
            except Exception as e:
                raise JudgeUnavailableError(name, f"{type(e).__name__}: {e}") from e
        return _coerce_score(name, raw)

    async def validate_usage(
        self,
        skill: Skill,
        artifact: str,
        judges: Sequence[JudgeLike],
        *,
        deadline: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ValidationReport:
        """
        Score an artifact with every judge and decide pass/fail.

        Args:
            skill: The skill the artifact should apply.
            artifact: The text under review.
            judges: Judge objects or callables ``(skill, artifact) -> score``.
            deadline: Seconds after which outstanding judge calls are cancelled.
            cancel_event: Cancels outstanding judge calls once set.

        Returns:
            ValidationReport with tier INTEGRATION. Judge failures are
            recorded in the report; they are never raised.

        Raises:
            ValueError: If no judges are given.
        """
        if not judges:
            raise ValueError("validate_usage requires at least one judge")

        wrapped = [as_judge(j) for j in judges]
        names = _judge_names(wrapped)
        outcomes, stopped = await self._gather(skill, artifact, wrapped, names, deadline, cancel_event)

        judge_scores: List[Optional[float]] = []
        judge_errors: Dict[str, str] = {}
        for name, (score, error) in zip(names, outcomes):
            if error is None and score is None:
                error = f"Judge '{name}' unavailable: {stopped or 'no response'}"
            if error is not None:
                judge_errors[name] = error
                logger.warning("judge_failed", judge=name, skill_id=skill.id, error=error)
            judge_scores.append(score)

        report = ValidationReport(
            skill_id=skill.id,
            tier=Tier.INTEGRATION,
            judge_scores=judge_scores,
            judge_errors=judge_errors,
        )
        self._decide(report, len(wrapped))

        logger.info(
            "usage_validated",
            skill_id=skill.id,
            passed=report.passed,
            consensus=report.consensus,
            mean=report.mean_score,
            spread=report.spread,
            responded=report.responded,
            judges=len(wrapped),
        )
        return report

    async def _gather(
        self,
        skill: Skill,
        artifact: str,
        judges: List[Judge],
        names: List[str],
        deadline: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[List[Tuple[Optional[float], Optional[str]]], Optional[str]]:
        loop = asyncio.get_running_loop()
        end = None if deadline is None else loop.time() + deadline
        tasks = [
            asyncio.create_task(self._run_judge(judge, name, skill, artifact))
            for judge, name in zip(judges, names)
        ]
        waiter = asyncio.create_task(cancel_event.wait()) if cancel_event is not None else None
        pending = set(tasks)
        stopped: Optional[str] = None

        try:
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    stopped = "cancelled"
                    break
                timeout = None
                if end is not None:
                    timeout = end - loop.time()
                    if timeout <= 0:
                        stopped = f"deadline of {deadline:g}s exceeded"
                        break
                watched = pending | {waiter} if waiter is not None else pending
                done, _ = await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
                pending -= done
        finally:
            leftovers = list(pending)
            if waiter is not None:
                leftovers.append(waiter)
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        outcomes: List[Tuple[Optional[float], Optional[str]]] = []
        for task in tasks:
            if task.cancelled():
                outcomes.append((None, None))
                continue
            exc = task.exception()
            if exc is not None:
                outcomes.append((None, str(exc)))
            else:
                outcomes.append((task.result(), None))
        return outcomes, stopped

    def _decide(self, report: ValidationReport, total: int) -> None:
        scores = [s for s in report.judge_scores or [] if s is not None]

        if len(scores) < self.min_judges:
            report.consensus = False
            report.add_violation(
                "insufficient-judges",
                f"{len(scores)} of {total} judge(s) responded; {self.min_judges} required",
            )
            return

        mean = statistics.mean(scores)
        spread = statistics.stdev(scores) if len(scores) >= 2 else 0.0
        report.mean_score = mean
        report.spread = spread
        report.consensus = True

        if mean < self.threshold:
            report.consensus = False
            report.add_violation(
                "quality-threshold",
                f"mean score {mean:.2f} is below threshold {self.threshold:.2f}",
            )
        if spread > self.tolerance:
            report.consensus = False
            report.add_violation(
                "judge-disagreement",
                f"score spread {spread:.2f} exceeds tolerance {self.tolerance:.2f}",
            )

    def validate_usage_sync(
        self,
        skill: Skill,
        artifact: str,
        judges: Sequence[JudgeLike],
        *,
        deadline: Optional[float] = None,
    ) -> ValidationReport:
        """Blocking wrapper around :meth:`validate_usage` for non-async callers."""
        return asyncio.run(self.validate_usage(skill, artifact, judges, deadline=deadline))

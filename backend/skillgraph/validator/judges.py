"""
Judges for the integration tier.

A judge scores how well an artifact applies a skill, on a 0-5 scale.
Plain callables ``(skill, artifact) -> score`` (sync or async) are wrapped
in FunctionJudge; StubJudge gives deterministic scores for tests;
CommandJudge asks an external scoring command.
"""

from __future__ import annotations

import asyncio
import inspect
import re
import shlex
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from ..errors import JudgeUnavailableError
from ..logging import get_logger
from ..models import Skill

logger = get_logger(__name__)

MAX_SCORE = 5.0

SCORE_PATTERN = re.compile(r"score\s*[:=]\s*(\d+(?:\.\d+)?)\s*(?:/\s*(\d+(?:\.\d+)?))?", re.IGNORECASE)
TOTAL_PATTERN = re.compile(r"total\s*[:=]\s*(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
FRACTION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)")

DEFAULT_PROMPT = """You are reviewing an artifact for correct use of a skill.

Skill: {skill_id} (domain: {domain}, version: {version})
Description: {description}
Keywords: {keywords}

Skill guidance:
{document}

Artifact:
{artifact}

Rate how well the artifact applies the skill from 0 to 5.
End your answer with a line of the form "Score: X/5".
"""


class Judge:
    """Base class for judges."""

    name: str = "judge"

    async def score(self, skill: Skill, artifact: str) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class FunctionJudge(Judge):
    """
    Adapts a sync or async callable to the Judge interface.

    Sync callables run on a worker pool so they cannot stall the event
    loop. A call abandoned after a timeout keeps its worker until the
    callable returns; nothing waits for it.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: Optional[str] = None,
        executor: Optional[Executor] = None,
    ):
        self.func = func
        self.name = name or getattr(func, "__name__", None) or type(func).__name__
        self.executor = executor

    async def score(self, skill: Skill, artifact: str) -> Any:
        if inspect.iscoroutinefunction(self.func) or inspect.iscoroutinefunction(
            getattr(self.func, "__call__", None)
        ):
            return await self.func(skill, artifact)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(self.executor or judge_executor(), self.func, skill, artifact)
        if inspect.isawaitable(result):
            result = await result
        return result


_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def judge_executor() -> ThreadPoolExecutor:
    """
    Worker pool shared by sync judges.

    Unlike the event loop's default executor, ``asyncio.run`` does not wait
    for this pool on exit, so a hung judge cannot hold up a finished
    validation.
    """
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(thread_name_prefix="skillgraph-judge")
        return _executor


def as_judge(candidate: Union[Judge, Callable[..., Any]], name: Optional[str] = None) -> Judge:
    """
    Coerce a Judge or callable into a Judge.

    Raises:
        TypeError: If the candidate is neither.
    """
    if isinstance(candidate, Judge):
        return candidate
    if callable(candidate):
        return FunctionJudge(candidate, name=name)
    raise TypeError(f"not a judge: {candidate!r}")


class StubJudge(Judge):
    """
    Deterministic judge for tests and dry runs.

    Args:
        score: A fixed score, a mapping of skill id to score, a callable
            ``(skill, artifact) -> score``, or an exception instance to raise.
        delay: Seconds to sleep before answering.
        name: Judge name used in reports.
    """

    def __init__(
        self,
        score: Union[float, Mapping[str, float], Callable[..., Any], BaseException, None],
        delay: float = 0.0,
        name: str = "stub",
        default: Optional[float] = None,
    ):
        self._score = score
        self.delay = delay
        self.name = name
        self.default = default
        self.calls = 0

    async def score(self, skill: Skill, artifact: str) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self._score
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, Mapping):
            return value.get(skill.id, self.default)
        if callable(value):
            return value(skill, artifact)
        return value


def parse_score(output: str, max_score: float = MAX_SCORE) -> Optional[float]:
    """
    Extract a 0-5 score from judge output.

    Recognizes ``Score: X/N``, ``Score: X`` (already on the 0-5 scale) and
    ``Total: X/N``, falling back to the last bare ``X/N`` fraction. Scores
    on another scale are rescaled to 0-5.

    Returns:
        The score, or None if no score was found.
    """
    match = SCORE_PATTERN.search(output)
    if match:
        value = float(match.group(1))
        if match.group(2):
            return _rescale(value, float(match.group(2)), max_score)
        return value

    match = TOTAL_PATTERN.search(output)
    if match is None:
        fractions = FRACTION_PATTERN.findall(output)
        if not fractions:
            return None
        value, scale = fractions[-1]
        return _rescale(float(value), float(scale), max_score)
    return _rescale(float(match.group(1)), float(match.group(2)), max_score)


def _rescale(value: float, scale: float, max_score: float) -> Optional[float]:
    if scale <= 0:
        return None
    return value / scale * max_score


class CommandJudge(Judge):
    """
    Judge backed by an external scoring command.

    The prompt is written to the command's stdin and the score is parsed
    from its stdout. ``context`` is the skill guidance the judge scores
    adherence to, usually the skill's markdown document. A non-zero exit
    or unparseable output makes the judge unavailable for that call.

    Example:
        CommandJudge(["claude", "--print"])
    """

    def __init__(
        self,
        argv: Union[str, Sequence[str]],
        name: Optional[str] = None,
        prompt_template: str = DEFAULT_PROMPT,
        context: Optional[str] = None,
    ):
        self.argv: List[str] = shlex.split(argv) if isinstance(argv, str) else list(argv)
        if not self.argv:
            raise ValueError("CommandJudge needs a command")
        self.name = name or self.argv[0]
        self.prompt_template = prompt_template
        self.context = context

    def build_prompt(self, skill: Skill, artifact: str) -> str:
        return self.prompt_template.format(
            skill_id=skill.id,
            domain=skill.domain,
            version=skill.version,
            description=skill.description or "",
            keywords=", ".join(skill.keywords),
            document=self.context or "(no skill document)",
            artifact=artifact,
        )

    async def score(self, skill: Skill, artifact: str) -> float:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise JudgeUnavailableError(self.name, f"cannot start command: {e}") from e

        try:
            stdout, stderr = await proc.communicate(self.build_prompt(skill, artifact).encode("utf-8"))
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:200]
            raise JudgeUnavailableError(self.name, f"exit status {proc.returncode}: {detail}")

        output = stdout.decode("utf-8", errors="replace")
        value = parse_score(output)
        if value is None:
            raise JudgeUnavailableError(self.name, "no score found in output")
        logger.debug("judge_scored", judge=self.name, skill_id=skill.id, score=value)
        return value

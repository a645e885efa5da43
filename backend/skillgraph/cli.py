"""CLI for SkillGraph.

Usage:
    skillgraph build PATH [--dump FILE]        # Build and summarise a registry
    skillgraph route PATH TEXT                 # Rank skills for a task
    skillgraph check PATH TEXT                 # Evaluate rules against text
    skillgraph validate PATH                   # Structural checks for every skill
    skillgraph judge PATH SKILL ARTIFACT ...   # Judged validation of an artifact
    skillgraph audit PATH                      # Registry consistency audit

Exit codes: 0 success, 1 failure or build error, 2 REJECT verdict,
3 not enough judges responded.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import get_settings
from .enforcement import RuleEvaluator, has_blocking
from .errors import SkillGraphError
from .loader import load
from .logging import configure_logging
from .models import Verdict
from .registry import RegistryStore
from .report import ReportTimer, generate_suite_report
from .router import TaskRouter
from .validator import (
    CommandJudge,
    ConsistencyValidator,
    IntegrationValidator,
    StructureValidator,
    StubJudge,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_REJECTED = 2
EXIT_INSUFFICIENT_JUDGES = 3


def _build(path: str) -> RegistryStore:
    return RegistryStore.build(load(path).documents)


def _print_verdicts(verdicts: List[Verdict]) -> None:
    if not verdicts:
        print("No rules triggered.")
        return
    print("Verdicts:")
    for verdict in verdicts:
        print(f"  {verdict}")
        if verdict.remediating_skills:
            print(f"    see: {', '.join(verdict.remediating_skills)}")


def cmd_build(args) -> int:
    """Build a registry and print a summary."""
    store = _build(args.path)
    print(f"Built registry: {len(store.all_skills())} skills, "
          f"{len(store.all_rules())} rules, {len(store.all_agents())} agents")
    print(f"Checksum: {store.checksum()}")

    by_domain: dict = {}
    for skill in store.all_skills():
        by_domain.setdefault(skill.domain, []).append(skill.id)
    for domain in sorted(by_domain):
        print(f"  [{domain}] {', '.join(by_domain[domain])}")

    if args.dump:
        Path(args.dump).write_text(store.dump_yaml(), encoding="utf-8")
        print(f"Registry written to {args.dump}")
    return EXIT_OK


def cmd_route(args) -> int:
    """Rank skills for a task description."""
    store = _build(args.path)
    result = TaskRouter(store).route(args.text, top_k=args.top_k)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        if not result.matches:
            print("No matching skills.")
        for rank, match in enumerate(result.matches, 1):
            via = f" (via {match.via})" if match.via else ""
            print(f"{rank}. {match.skill_id}  score={match.score:.2f}{via}")
            if match.reason:
                print(f"   {match.reason}")
        if result.specialist:
            print(f"Specialist: {result.specialist}")
        _print_verdicts(result.verdicts)

    return EXIT_REJECTED if result.blocking else EXIT_OK


def cmd_check(args) -> int:
    """Evaluate enforcement rules against text."""
    store = _build(args.path)
    verdicts = RuleEvaluator(store).evaluate(args.text)

    if args.json:
        print(json.dumps([v.to_dict() for v in verdicts], indent=2))
    else:
        _print_verdicts(verdicts)

    return EXIT_REJECTED if has_blocking(verdicts) else EXIT_OK


def cmd_validate(args) -> int:
    """Run structural checks over every skill."""
    documents = load(args.path)
    with ReportTimer() as timer:
        store = RegistryStore.build(documents.documents)
        reports = StructureValidator().validate_all(store)
        audit = ConsistencyValidator().validate(store, documents.metadata)
    suite = generate_suite_report(reports, timer.duration_ms, store.checksum(), audit)

    if args.output:
        suite.save(Path(args.output), format=args.format)
        print(f"Report written to {args.output}")
    elif args.format == "markdown":
        print(suite.to_markdown())
    else:
        print(suite.to_json())

    return EXIT_OK if all(r.passed for r in reports) else EXIT_FAILED


def _read_artifact(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    return Path(value).read_text(encoding="utf-8")


def cmd_judge(args) -> int:
    """Score an artifact with judges."""
    store = _build(args.path)
    skill = store.get_skill(args.skill_id)
    artifact = _read_artifact(args.artifact)

    guidance = store.get_document(skill.id)
    judges = [CommandJudge(cmd, context=guidance) for cmd in args.judge_command or []]
    judges += [StubJudge(score, name=f"stub-{i}") for i, score in enumerate(args.stub_score or [])]
    if not judges:
        print("Error: give at least one --judge-command or --stub-score", file=sys.stderr)
        return EXIT_FAILED

    validator = IntegrationValidator(
        threshold=args.threshold,
        tolerance=args.tolerance,
        judge_timeout=args.timeout,
        min_judges=args.min_judges,
    )
    report = validator.validate_usage_sync(skill, artifact, judges, deadline=args.deadline)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(report.summary())

    if report.insufficient_judges:
        return EXIT_INSUFFICIENT_JUDGES
    return EXIT_OK if report.passed else EXIT_FAILED


def cmd_audit(args) -> int:
    """Audit registry consistency."""
    documents = load(args.path)
    store = RegistryStore.build(documents.documents)
    result = ConsistencyValidator().validate(store, documents.metadata)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.summary())

    return EXIT_OK if result.valid else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillgraph",
        description="SkillGraph CLI - route tasks to skills, enforce rules, validate skills",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Log level (default from SKILLGRAPH_LOG_LEVEL)")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log records")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # build command
    build_parser_ = subparsers.add_parser("build", help="Build and summarise a registry")
    build_parser_.add_argument("path", help="Registry file or directory")
    build_parser_.add_argument("--dump", help="Write the built registry as a YAML bundle")
    build_parser_.set_defaults(func=cmd_build)

    # route command
    route_parser = subparsers.add_parser("route", help="Rank skills for a task")
    route_parser.add_argument("path", help="Registry file or directory")
    route_parser.add_argument("text", help="Task description")
    route_parser.add_argument("--top-k", "-k", type=int, default=None, help="Maximum matches")
    route_parser.add_argument("--json", action="store_true", help="Output JSON")
    route_parser.set_defaults(func=cmd_route)

    # check command
    check_parser = subparsers.add_parser("check", help="Evaluate enforcement rules against text")
    check_parser.add_argument("path", help="Registry file or directory")
    check_parser.add_argument("text", help="Task description or artifact text")
    check_parser.add_argument("--json", action="store_true", help="Output JSON")
    check_parser.set_defaults(func=cmd_check)

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Structural checks for every skill")
    validate_parser.add_argument("path", help="Registry file or directory")
    validate_parser.add_argument("--format", "-f", choices=["json", "markdown"], default="json")
    validate_parser.add_argument("--output", "-o", help="Write the report to a file")
    validate_parser.set_defaults(func=cmd_validate)

    # judge command
    judge_parser = subparsers.add_parser("judge", help="Judged validation of an artifact")
    judge_parser.add_argument("path", help="Registry file or directory")
    judge_parser.add_argument("skill_id", help="Skill the artifact should apply")
    judge_parser.add_argument("artifact", help="Artifact file, or - for stdin")
    judge_parser.add_argument("--judge-command", action="append", metavar="CMD",
                              help="Scoring command; prompt on stdin, 'Score: X/5' on stdout")
    judge_parser.add_argument("--stub-score", action="append", type=float, metavar="X",
                              help="Fixed-score judge (for dry runs)")
    judge_parser.add_argument("--threshold", type=float, default=None)
    judge_parser.add_argument("--tolerance", type=float, default=None)
    judge_parser.add_argument("--timeout", type=float, default=None, help="Seconds per judge")
    judge_parser.add_argument("--deadline", type=float, default=None, help="Seconds for all judges")
    judge_parser.add_argument("--min-judges", type=int, default=None)
    judge_parser.add_argument("--json", action="store_true", help="Output JSON")
    judge_parser.set_defaults(func=cmd_judge)

    # audit command
    audit_parser = subparsers.add_parser("audit", help="Registry consistency audit")
    audit_parser.add_argument("path", help="Registry file or directory")
    audit_parser.add_argument("--json", action="store_true", help="Output JSON")
    audit_parser.set_defaults(func=cmd_audit)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, args.log_json or settings.log_json)

    if args.command is None:
        parser.print_help()
        return EXIT_FAILED

    try:
        return args.func(args)
    except (SkillGraphError, OSError, UnicodeDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())

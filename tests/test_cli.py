"""
Tests for the skillgraph CLI.
"""

import json
import sys
import textwrap

import pytest

from backend.skillgraph.cli import (
    EXIT_FAILED,
    EXIT_INSUFFICIENT_JUDGES,
    EXIT_OK,
    EXIT_REJECTED,
    main,
)


REGISTRY = textwrap.dedent("""\
    metadata:
      total_skills: 2
      domains:
        ui: 1
        backend: 1
    skills:
      - id: widgets
        domain: ui
        version: 1.0.0
        keywords: [widget]
    rules:
      - id: no-globals
        name: No Globals
        severity: critical
        violation_triggers: [global]
        enforcement_action: REJECT
        implementation_skills: [scoped-state]
    agents:
      - id: frontend-dev
        skills: [widgets]
      - id: backend-dev
        skills: [scoped-state]
""")


@pytest.fixture
def registry_dir(tmp_path, good_document):
    (tmp_path / "registry.yml").write_text(REGISTRY, encoding="utf-8")
    skill_md = good_document.replace(
        "version: 1.0.0\n",
        "version: 1.0.0\nkeywords: [state]\nenforces_rules: [no-globals]\n"
        "required_sections: [when-to-use, pattern, antipatterns]\n",
    )
    (tmp_path / "scoped-state.md").write_text(skill_md, encoding="utf-8")
    return tmp_path


class TestBuildCommand:
    """Tests for `skillgraph build`."""

    def test_build(self, registry_dir, capsys):
        assert main(["build", str(registry_dir)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Built registry: 2 skills, 1 rules, 2 agents" in out
        assert "[ui] widgets" in out

    def test_dump(self, registry_dir, tmp_path, capsys):
        dump = tmp_path / "dump.yml"
        assert main(["build", str(registry_dir), "--dump", str(dump)]) == EXIT_OK
        assert "skills:" in dump.read_text(encoding="utf-8")

    def test_build_error(self, tmp_path, capsys):
        (tmp_path / "bad.yml").write_text("skills:\n  - id: a\n", encoding="utf-8")
        assert main(["build", str(tmp_path)]) == EXIT_FAILED
        assert "missing required field" in capsys.readouterr().err

    def test_missing_path(self, tmp_path, capsys):
        assert main(["build", str(tmp_path / "nope")]) == EXIT_FAILED
        assert "Error:" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == EXIT_FAILED


class TestRouteAndCheck:
    """Tests for `skillgraph route` and `skillgraph check`."""

    def test_route(self, registry_dir, capsys):
        assert main(["route", str(registry_dir), "build a widget"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "1. widgets" in out
        assert "Specialist: frontend-dev" in out

    def test_route_json(self, registry_dir, capsys):
        assert main(["route", str(registry_dir), "manage state", "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["matches"][0]["skill_id"] == "scoped-state"
        assert data["specialist"] == "backend-dev"

    def test_route_reject(self, registry_dir, capsys):
        assert main(["route", str(registry_dir), "a global widget"]) == EXIT_REJECTED
        assert "[REJECT] no-globals" in capsys.readouterr().out

    def test_check(self, registry_dir, capsys):
        assert main(["check", str(registry_dir), "use a global variable"]) == EXIT_REJECTED
        assert main(["check", str(registry_dir), "hello"]) == EXIT_OK
        assert "No rules triggered." in capsys.readouterr().out

    def test_check_json(self, registry_dir, capsys):
        main(["check", str(registry_dir), "a global", "--json"])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["remediating_skills"] == ["scoped-state"]


class TestValidateAndAudit:
    """Tests for `skillgraph validate` and `skillgraph audit`."""

    def test_validate(self, registry_dir, capsys):
        """widgets has no document, so the run fails."""
        assert main(["validate", str(registry_dir)]) == EXIT_FAILED
        data = json.loads(capsys.readouterr().out)
        results = {r["skill_id"]: r["passed"] for r in data["reports"]}
        assert results == {"scoped-state": True, "widgets": False}

    def test_validate_markdown_output(self, registry_dir, tmp_path, capsys):
        output = tmp_path / "report.md"
        main(["validate", str(registry_dir), "--format", "markdown", "--output", str(output)])
        assert "| scoped-state | UNIT | PASS | 0 |" in output.read_text(encoding="utf-8")

    def test_audit(self, registry_dir, capsys):
        assert main(["audit", str(registry_dir)]) == EXIT_OK
        assert "Consistency audit PASSED" in capsys.readouterr().out

    def test_audit_metadata_mismatch(self, registry_dir, capsys):
        (registry_dir / "extra.yml").write_text(
            "kind: skill\nid: layout\ndomain: ui\nversion: 1.0.0\nkeywords: [layout]\n",
            encoding="utf-8",
        )
        assert main(["audit", str(registry_dir), "--json"]) == EXIT_FAILED
        data = json.loads(capsys.readouterr().out)
        assert data["orphans"] == ["layout"]


class TestJudgeCommand:
    """Tests for `skillgraph judge`."""

    @pytest.fixture
    def artifact(self, tmp_path):
        path = tmp_path / "artifact.py"
        path.write_text("class Counter:\n    count = 0\n", encoding="utf-8")
        return str(path)

    def test_passing(self, registry_dir, artifact, capsys):
        argv = ["judge", str(registry_dir), "scoped-state", artifact,
                "--stub-score", "4.2", "--stub-score", "4.6"]
        assert main(argv) == EXIT_OK
        assert "INTEGRATION validation PASSED" in capsys.readouterr().out

    def test_failing(self, registry_dir, artifact, capsys):
        argv = ["judge", str(registry_dir), "scoped-state", artifact,
                "--stub-score", "5", "--stub-score", "2", "--json"]
        assert main(argv) == EXIT_FAILED
        data = json.loads(capsys.readouterr().out)
        assert data["consensus"] is False

    def test_insufficient_judges(self, registry_dir, artifact, capsys):
        failing = f"{sys.executable} -c 'import sys; sys.exit(1)'"
        argv = ["judge", str(registry_dir), "scoped-state", artifact, "--judge-command", failing]
        assert main(argv) == EXIT_INSUFFICIENT_JUDGES

    def test_command_judge(self, registry_dir, artifact, capsys):
        scorer = f"{sys.executable} -c 'import sys; sys.stdin.read(); print(\"Score: 9/10\")'"
        argv = ["judge", str(registry_dir), "scoped-state", artifact, "--judge-command", scorer]
        assert main(argv) == EXIT_OK

    def test_command_judge_sees_skill_document(self, registry_dir, artifact, capsys):
        script = "import sys; print(\"Score: 5/5\" if \"instance-state\" in sys.stdin.read() else \"Score: 0/5\")"
        scorer = f"{sys.executable} -c '{script}'"
        argv = ["judge", str(registry_dir), "scoped-state", artifact, "--judge-command", scorer]
        assert main(argv) == EXIT_OK

    def test_unknown_skill(self, registry_dir, artifact, capsys):
        argv = ["judge", str(registry_dir), "gadgets", artifact, "--stub-score", "5"]
        assert main(argv) == EXIT_FAILED
        assert "Skill not found: gadgets" in capsys.readouterr().err

    def test_no_judges(self, registry_dir, artifact, capsys):
        assert main(["judge", str(registry_dir), "scoped-state", artifact]) == EXIT_FAILED

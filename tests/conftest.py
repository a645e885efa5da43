"""
Shared fixtures for SkillGraph tests.
"""

from typing import Any, Dict, List, Optional

import pytest
import structlog

from backend.skillgraph.config import Settings
from backend.skillgraph.models import RawDocument
from backend.skillgraph.registry import RegistryStore


def _skill(skill_id: str, domain: str = "general", keywords: Optional[List[str]] = None, **extra: Any) -> RawDocument:
    data: Dict[str, Any] = {
        "id": skill_id,
        "domain": domain,
        "version": "1.0.0",
        "keywords": keywords if keywords is not None else [skill_id],
    }
    data.update(extra)
    return RawDocument(kind="skill", data=data, source=f"{skill_id}.yml")


def _rule(
    rule_id: str,
    triggers: Any,
    skills: List[str],
    action: str = "REJECT",
    severity: str = "critical",
    **extra: Any,
) -> RawDocument:
    data: Dict[str, Any] = {
        "id": rule_id,
        "name": rule_id.replace("-", " ").title(),
        "severity": severity,
        "violation_triggers": triggers,
        "enforcement_action": action,
        "implementation_skills": skills,
    }
    data.update(extra)
    return RawDocument(kind="rule", data=data, source="rules.yml")


def _agent(agent_id: str, skills: List[str]) -> RawDocument:
    return RawDocument(kind="agent", data={"id": agent_id, "skills": skills}, source="agents.yml")


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo CLI logging configuration bound to a per-test captured stderr."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_skill():
    """Factory for skill documents."""
    return _skill


@pytest.fixture
def make_rule():
    """Factory for rule documents."""
    return _rule


@pytest.fixture
def make_agent():
    """Factory for agent preset documents."""
    return _agent


@pytest.fixture
def documents() -> List[RawDocument]:
    """A small consistent registry: two domains, three rules, two agents."""
    return [
        _skill("widgets", domain="ui", keywords=["widget", "component"],
               dependencies=["layout"], enforces_rules=["prefer-components"]),
        _skill("layout", domain="ui", keywords=["layout", "grid layout"]),
        _skill("scoped-state", domain="backend", keywords=["state", "state management"],
               enforces_rules=["no-globals"],
               required_sections=["when-to-use", "pattern", "antipatterns"]),
        _skill("security-basics", domain="security", keywords=["sql injection", "xss"],
               enforces_rules=["no-raw-sql"]),
        _rule("no-globals", ["global"], ["scoped-state"]),
        _rule("no-raw-sql", {"keywords": ["raw sql"], "patterns": [r"execute\(\s*['\"]select"]},
              ["security-basics"]),
        _rule("prefer-components", ["inline style"], ["widgets"],
              action="SUGGEST", severity="informational"),
        _agent("frontend-dev", ["widgets", "layout"]),
        _agent("backend-dev", ["scoped-state", "security-basics"]),
    ]


@pytest.fixture
def store(documents) -> RegistryStore:
    return RegistryStore.build(documents)


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from SKILLGRAPH_* variables in the environment."""
    return Settings(_env_file=None, keyword_weight=1.0, domain_weight=2.0,
                    dependency_discount=0.5, default_top_k=5)


GOOD_DOCUMENT = """---
name: scoped-state
description: Keep mutable state inside the object that owns it.
domain: backend
version: 1.0.0
---

# Scoped State

<when-to-use>
Use when a value must survive between calls but should not leak across requests.
</when-to-use>

<pattern name="instance-state">
Store state on the instance that owns the lifecycle.

```python
class Counter:
    def __init__(self):
        self.count = 0
```
</pattern>

<antipatterns>
<antipattern name="module-global">
❌ Bad: a module-level mutable shared by every caller.

```python
COUNT = 0
```

✅ Good: the owning object holds the value.

```python
counter = Counter()
```
</antipattern>
</antipatterns>
"""


@pytest.fixture
def good_document() -> str:
    """A scoped-state document that passes every structural check."""
    return GOOD_DOCUMENT

"""
Tests for the Dependency Resolver.
"""

import pytest

from backend.skillgraph.errors import UnknownSkillError
from backend.skillgraph.registry import RegistryStore


@pytest.fixture
def diamond(make_skill):
    """app -> (api, ui); api -> core; ui -> core."""
    return RegistryStore.build([
        make_skill("app", dependencies=["ui", "api"]),
        make_skill("api", dependencies=["core"]),
        make_skill("ui", dependencies=["core"]),
        make_skill("core"),
        make_skill("standalone"),
    ])


class TestClosure:
    """Tests for closure ordering."""

    def test_leaf_closure(self, diamond):
        assert diamond.resolver.closure("core") == ["core"]

    def test_dependencies_first(self, diamond):
        """Test dependencies precede the skills that need them."""
        closure = diamond.resolver.closure("app")
        assert closure[-1] == "app"
        for skill_id in closure:
            for dep in diamond.get_skill(skill_id).dependencies:
                assert closure.index(dep) < closure.index(skill_id)

    def test_deterministic_order(self, diamond):
        """Test siblings are visited in sorted order and calls are idempotent."""
        assert diamond.resolver.closure("app") == ["core", "api", "ui", "app"]
        assert diamond.resolver.closure("app") == diamond.resolver.closure("app")

    def test_shared_dependency_listed_once(self, diamond):
        closure = diamond.resolver.closure("app")
        assert len(closure) == len(set(closure))

    def test_store_closure_delegates(self, diamond):
        assert diamond.closure("api") == ["core", "api"]

    def test_unknown_skill(self, diamond):
        with pytest.raises(UnknownSkillError):
            diamond.resolver.closure("missing")

    def test_returned_list_is_a_copy(self, diamond):
        diamond.resolver.closure("app").append("junk")
        assert "junk" not in diamond.resolver.closure("app")

    def test_dependencies_of(self, diamond):
        assert diamond.resolver.dependencies_of("api") == ["core"]
        assert diamond.resolver.dependencies_of("standalone") == []

    def test_deep_chain(self, make_skill):
        ids = [f"s{i:04d}" for i in range(1500)]
        docs = [make_skill(a, dependencies=[b]) for a, b in zip(ids, ids[1:])]
        docs.append(make_skill(ids[-1]))
        closure = RegistryStore.build(docs).resolver.closure(ids[0])
        assert closure == list(reversed(ids))



class TestReverseEdges:
    """Tests for dependents and depth."""

    def test_dependents(self, diamond):
        assert diamond.resolver.dependents("core") == ["api", "ui"]
        assert diamond.resolver.dependents("app") == []

    def test_dependents_unknown(self, diamond):
        with pytest.raises(UnknownSkillError):
            diamond.resolver.dependents("missing")

    def test_depth(self, diamond):
        assert diamond.resolver.depth("app", "app") == 0
        assert diamond.resolver.depth("app", "api") == 1
        assert diamond.resolver.depth("app", "core") == 2
        assert diamond.resolver.depth("core", "app") == -1

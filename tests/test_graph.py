"""Tests for crossbuild.graph module."""

import pytest

from crossbuild import Registry
from crossbuild.exceptions import ConfigurationError
from crossbuild.graph import Graph


@pytest.fixture
def steps():
	return Registry()


class TestGraph:
	def test_dependencies_come_first(self, steps):
		steps.step("c", deps=["b"])
		steps.step("b", deps=["a"])
		steps.step("a")
		graph = Graph.build(steps.nodes(), steps.lookup)
		assert graph.order() == ["a", "b", "c"]
		assert graph.edges["c"] == ["b"]

	def test_only_requested_subgraph(self, steps):
		steps.step("a")
		steps.step("b", deps=["a"])
		steps.step("unrelated")
		graph = Graph.build(["b"], steps.lookup)
		assert graph.order() == ["a", "b"]
		assert "unrelated" not in graph

	def test_shared_dependency_once(self, steps):
		steps.step("base")
		steps.step("left", deps=["base"])
		steps.step("right", deps=["base"])
		steps.step("top", deps=["left", "right", "base"])
		graph = Graph.build(["top"], steps.lookup)
		assert graph.order().count("base") == 1
		assert graph.order()[-1] == "top"

	def test_cycle_names_all_nodes(self, steps):
		steps.step("A", deps=["B"])
		steps.step("B", deps=["A"])
		with pytest.raises(ConfigurationError) as excinfo:
			Graph.build(steps.nodes(), steps.lookup)
		message = str(excinfo.value)
		assert "cycle" in message
		assert "A" in message and "B" in message

	def test_longer_cycle_only_names_participants(self, steps):
		steps.step("entry", deps=["x"])
		steps.step("x", deps=["y"])
		steps.step("y", deps=["z"])
		steps.step("z", deps=["x"])
		with pytest.raises(ConfigurationError, match="x -> y -> z -> x") as excinfo:
			Graph.build(["entry"], steps.lookup)
		assert "entry" not in str(excinfo.value)

	def test_self_dependency(self, steps):
		steps.step("a", deps=["a"])
		with pytest.raises(ConfigurationError, match="a -> a"):
			Graph.build(["a"], steps.lookup)

	def test_unknown_dependency(self, steps):
		steps.step("a", deps=["missing"])
		with pytest.raises(ConfigurationError, match="missing"):
			Graph.build(["a"], steps.lookup)

	def test_dependents(self, steps):
		steps.step("a")
		steps.step("b", deps=["a"])
		steps.step("c", deps=["b"])
		steps.step("d")
		graph = Graph.build(steps.nodes(), steps.lookup)
		assert graph.dependents("a") == ["b", "c"]
		assert graph.dependents("d") == []

	def test_dependents_shared(self, steps):
		steps.step("base")
		steps.step("left", deps=["base"])
		steps.step("right", deps=["base"])
		steps.step("top", deps=["left", "right"])
		graph = Graph.build(steps.nodes(), steps.lookup)
		assert graph.reverse["base"] == ["left", "right"]
		assert graph.dependents("base") == ["left", "right", "top"]
		assert graph.dependents("right") == ["top"]
		assert graph.dependents("top") == []

	def test_tree(self, steps):
		steps.step("a")
		steps.step("b", deps=["a"])
		graph = Graph.build(["b"], steps.lookup)
		assert graph.tree("b") == {"a": {}}

	def test_cycle_between_targets(self, registry, project):
		a = project.new_target("a", triple="x86_64-unknown-linux-gnu")
		b = project.new_target("b", triple="aarch64-unknown-linux-gnu")
		a.depends_on(b)
		b.depends_on("native:a")
		with pytest.raises(ConfigurationError, match="native:a") as excinfo:
			registry.run()
		assert "native:b" in str(excinfo.value)

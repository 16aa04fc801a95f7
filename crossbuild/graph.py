from .exceptions import ConfigurationError
from .verbose_print import verbose_print


"""The dependency graph between build nodes.

A node is anything the engine can run:
	name: Unique name of the node, used to refer to it and in reports.
	deps(): A list of handles that must complete successfully before this node runs.
		A handle is either another node or the name of one.
	finalize(): Resolve configuration. May raise ConfigurationError.
		Called once for every node before the graph is built.
	execute(context): Run the node. Assumes all dependencies have completed.
		Returns BUILT, UP_TO_DATE or COMPLETED, or raises a NodeError (BuildFailure, ContractViolation).
		context provides state, force and timeout (see engine.Engine).

The graph is built and validated (all handles resolvable, no cycles) before anything runs,
and is not modified afterwards.
"""


BUILT = "built"
UP_TO_DATE = "up-to-date"
COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"


class Node:
	def __init__(self, name):
		self.name = name

	def __repr__(self):
		return f"<{type(self).__name__}({self.name!r})>"

	def deps(self):
		return []

	def finalize(self):
		pass

	def execute(self, context):
		raise NotImplementedError


class Graph:
	"""Nodes (by name, in a valid execution order) and the edges between them."""
	def __init__(self):
		self.nodes = {}
		self.edges = {}
		# dep -> names of the nodes directly depending on it
		self.reverse = {}

	@classmethod
	def build(cls, roots, lookup):
		"""Build the graph of roots and everything they transitively depend on.
		lookup(handle) must return the node for a handle, or raise ConfigurationError.
		Raises ConfigurationError naming every node involved if there is a cycle.
		"""
		graph = cls()
		for root in roots:
			graph._visit(lookup(root), lookup, ())
		return graph

	def _visit(self, node, lookup, chain):
		has_cycle = node.name in chain
		chain += (node.name,)
		if has_cycle:
			start = chain.index(node.name)
			raise ConfigurationError(f"Dependency cycle detected: {' -> '.join(chain[start:])}")
		if node.name in self.nodes:
			return
		verbose_print(3, f"Resolving dependencies of {node.name}")
		deps = []
		for handle in node.deps():
			dep = lookup(handle)
			self._visit(dep, lookup, chain)
			if dep.name not in deps:
				deps.append(dep.name)
		# nodes are added after all their deps, so insertion order is a topological order
		self.nodes[node.name] = node
		self.edges[node.name] = deps
		self.reverse.setdefault(node.name, [])
		for dep in deps:
			self.reverse[dep].append(node.name)

	def __contains__(self, name):
		return name in self.nodes

	def __len__(self):
		return len(self.nodes)

	def order(self):
		return list(self.nodes)

	def dependents(self, name):
		"""All nodes which transitively depend on the named node"""
		result = set()
		frontier = [name]
		while frontier:
			for other in self.reverse[frontier.pop()]:
				if other not in result:
					result.add(other)
					frontier.append(other)
		return [other for other in self.nodes if other in result]

	def tree(self, name):
		"""The dependencies of name as a tree {dep: tree(dep)}"""
		return {dep: self.tree(dep) for dep in self.edges[name]}

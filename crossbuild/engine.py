import os
import sys
import traceback
from concurrent.futures import ThreadPoolExecutor, FIRST_COMPLETED, wait

from .exceptions import BuildFailure, ConfigurationError, NodeError, chain_str
from .graph import Graph, BUILT, UP_TO_DATE, COMPLETED, FAILED, SKIPPED
from .verbose_print import color, node_print, verbose_print


class Result:
	def __init__(self, name, status, error=None):
		self.name = name
		self.status = status
		self.error = error

	def __repr__(self):
		return f"<Result {self.name}: {self.status}>"

	@property
	def ok(self):
		return self.status in (BUILT, UP_TO_DATE, COMPLETED)


class RunReport:
	"""The outcome of every node that was part of a run, in execution order."""
	def __init__(self, graph, results):
		self.graph = graph
		self.results = results

	def __repr__(self):
		return f"<RunReport {'ok' if self.ok else 'failed'}: {len(self.results)} nodes>"

	def __getitem__(self, name):
		return self.results[name]

	def __iter__(self):
		return iter(self.results.values())

	@property
	def ok(self):
		return all(result.ok for result in self)

	def with_status(self, status):
		return [result.name for result in self if result.status == status]

	@property
	def errors(self):
		return [result.error for result in self if result.status == FAILED]

	def raise_for_status(self):
		"""Raise the first error of the run, if any"""
		errors = self.errors
		if errors:
			raise errors[0]


class Engine:
	"""Runs the build graph of a registry.

	jobs: Maximum number of nodes running at once. Defaults to the number of CPUs.
	fail_fast: After the first failure, stop starting new nodes (running ones still finish).
		Otherwise only nodes depending on the failed one are skipped.
	timeout: Seconds after which a toolchain process is killed and its target fails.
	force: Rebuild targets even if they are up to date.
	"""
	def __init__(self, registry, jobs=None, fail_fast=False, timeout=None, force=False):
		if jobs is not None and jobs < 1:
			raise ConfigurationError(f"jobs must be at least 1, not {jobs}")
		self.registry = registry
		self.jobs = jobs or os.cpu_count() or 1
		self.fail_fast = fail_fast
		self.timeout = timeout
		self.force = force

	# The context passed to Node.execute()

	@property
	def state(self):
		return self.registry.state

	def lookup(self, handle):
		return self.registry.lookup(handle)

	def prepare(self, names=None):
		"""Finalize all configuration and build the graph for the given node names
		(default: every node). Raises ConfigurationError without running anything."""
		self.registry.finalize()
		roots = self.registry.nodes() if names is None else list(names)
		graph = Graph.build(roots, self.lookup)
		self.registry.freeze()
		return graph

	def run(self, names=None, completed=()):
		"""Run the given nodes and their dependencies. Nodes named in completed are treated as
		having already succeeded (eg. a step done by an outside process) and are not run.
		Returns a RunReport. Configuration problems are raised as ConfigurationError before anything runs.
		"""
		graph = self.prepare(names)
		completed = [self.lookup(handle).name for handle in completed]

		results = {}
		for name in completed:
			if name in graph:
				results[name] = Result(name, COMPLETED)

		running = {}
		stopping = False
		with ThreadPoolExecutor(max_workers=self.jobs) as executor:
			while True:
				if not stopping:
					for name in graph.order():
						if len(running) >= self.jobs:
							break
						if name in results or name in running.values():
							continue
						deps = graph.edges[name]
						if all(dep in results and results[dep].ok for dep in deps):
							future = executor.submit(graph.nodes[name].execute, self)
							running[future] = name
				if not running:
					break
				done, _ = wait(running, return_when=FIRST_COMPLETED)
				for future in done:
					name = running.pop(future)
					result = self._result(name, future)
					results[name] = result
					self._report(result)
					if not result.ok:
						self._skip_dependents(graph, result, results)
						if self.fail_fast:
							stopping = True

		for name in graph.order():
			if name not in results:
				results[name] = Result(name, SKIPPED)
				node_print(0, name, color.yellow("skipped after an earlier failure"))

		ordered = {name: results[name] for name in graph.order()}
		return RunReport(graph, ordered)

	def _result(self, name, future):
		try:
			status = future.result()
		except NodeError as e:
			return Result(name, FAILED, e)
		except Exception as e:
			error = BuildFailure([name], f"Unexpected {type(e).__name__}: {e}")
			error.__cause__ = e
			return Result(name, FAILED, error)
		return Result(name, status)

	def _report(self, result):
		if result.status == BUILT:
			node_print(0, result.name, color.green("built"))
		elif result.status == UP_TO_DATE:
			node_print(1, result.name, "up to date")
		elif result.status == COMPLETED:
			node_print(1, result.name, "done")
		else:
			verbose_print(-1, color.red(f"{type(result.error).__name__}: ") + str(result.error), file=sys.stderr)
			if result.error.__cause__ is not None:
				verbose_print(-1, "".join(traceback.format_exception(result.error.__cause__)).rstrip("\n"), file=sys.stderr)

	def _skip_dependents(self, graph, failed, results):
		for name in graph.dependents(failed.name):
			if name not in results:
				results[name] = Result(name, SKIPPED, failed.error)
				node_print(0, name, color.yellow(f"skipped because {chain_str([failed.name])} failed"))

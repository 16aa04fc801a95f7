import functools
import os

from . import toolchain as toolchains
from .cmd import cmd, run
from .engine import Engine
from .environment import EnvironmentScope
from .exceptions import ConfigurationError, CrossBuildError
from .graph import Graph, Node
from .projects import NamedContainer, Project, ProjectBuild, Target
from .staging import Staging
from .state import State
from .steps import Step
from .verbose_print import verbose_print


class Registry:
	"""A registry holds the projects, targets and steps of a build,
	and the state needed to know which targets are up to date.
	Generally there is only one registry.

	Configuration happens on a single thread: create projects with new_project(),
	their targets with Project.new_target(), and any other steps with step() and staging().
	Then call run(). Once a run has started the configuration is frozen.

	The registry's own environment (env / environment()) is the root every
	project's and target's environment extends from.
	"""
	def __init__(self, state_path=None):
		self.state = State(state_path)
		self.env = EnvironmentScope("build")
		self.projects = NamedContainer("project", functools.partial(Project, self))
		# steps and stagings share one namespace
		self.steps = NamedContainer("step", Step)

	def close(self):
		self.state.close()

	def __enter__(self):
		return self

	def __exit__(self, *exc_info):
		self.close()

	def load_buildfile(self, buildfile):
		injected = {
			"os": os,
			"registry": self,
			"project": self.new_project,
			"step": self.step,
			"staging": self.staging,
			"environment": self.environment,
			"toolchain": toolchains.resolve,
			"EXECUTABLE": toolchains.EXECUTABLE,
			"DYNAMIC_LIBRARY": toolchains.DYNAMIC_LIBRARY,
			"cmd": cmd,
			"run": run,
			"log": functools.partial(verbose_print, 1),
		}
		with open(buildfile) as f:
			source = f.read()
		code = compile(source, buildfile, "exec")
		try:
			exec(code, injected)
		except CrossBuildError:
			raise
		except Exception as e:
			raise CrossBuildError("Unhandled exception while loading Buildfile") from e

	# Registration

	def new_project(self, name, configure=None, **config):
		if ":" in name:
			raise ConfigurationError(f"Project name {name!r} may not contain ':'")
		if name in self.steps:
			raise ConfigurationError(f"Project name {name!r} is already used by a step")
		return self.projects.create(name, configure, **config)

	def step(self, name, action=None, deps=()):
		"""Register an opaque prerequisite step. Can also be used as a decorator:
			@registry.step("bundle", deps=[...])
			def bundle():
				...
		"""
		self._check_name(name)
		return self.steps.add(name, Step(name, action, deps))

	def staging(self, name, directory, version, base_name=None, extension="exe", alias=None):
		self._check_name(name)
		return self.steps.add(name, Staging(name, directory, version, base_name, extension, alias))

	def _check_name(self, name):
		if not isinstance(name, str) or not name or ":" in name:
			raise ConfigurationError(f"Invalid step name {name!r}, names must be non-empty and may not contain ':'")
		if name in self.projects:
			raise ConfigurationError(f"Step name {name!r} is already used by a project")

	def environment(self, name_or_mapping, value=None):
		self.env.environment(name_or_mapping, value)
		return self

	# Lookup

	def targets(self):
		return [target for project in self.projects for target in project.targets]

	def nodes(self):
		return self.targets() + list(self.steps)

	def lookup(self, handle):
		"""Find the node for a handle: a node, a project, or a node name.
		Targets are named PROJECT:TARGET. A project (or its bare name) stands for all of its targets.
		Raises ConfigurationError if there's no such node."""
		if isinstance(handle, Project):
			handle = handle.build_node
		if isinstance(handle, Node):
			if isinstance(handle, Target):
				owner = self.projects.get(handle.project.name)
				known = owner is handle.project and handle.project.targets.get(handle.target) is handle
			elif isinstance(handle, ProjectBuild):
				known = self.projects.get(handle.project.name) is handle.project
			else:
				known = self.steps.get(handle.name) is handle
			if not known:
				raise ConfigurationError(f"{handle.name!r} is not registered in this build")
			return handle
		if not isinstance(handle, str):
			raise ConfigurationError(f"Invalid dependency {handle!r}, expected a target, project, step or name")
		if ":" in handle:
			project_name, target_name = handle.split(":", 1)
			project = self.projects.get(project_name)
			if project is not None and target_name in project.targets:
				return project.targets[target_name]
		elif handle in self.steps:
			return self.steps[handle]
		elif handle in self.projects:
			return self.projects[handle].build_node
		raise ConfigurationError(f"No target, project or step named {handle!r}")

	# Execution

	def finalize(self):
		"""Resolve all configuration. Raises ConfigurationError on the first problem."""
		for project in self.projects:
			project.finalize()
		for node in self.nodes():
			node.finalize()
		self._check_outputs()

	def _check_outputs(self):
		for project in self.projects:
			seen = {}
			for target in project.targets:
				other = seen.get(target.binary_file)
				if other is not None and target.config.alias_of != other.target:
					raise ConfigurationError(
						f"Targets {other.name!r} and {target.name!r} both build {target.binary_file}"
					)
				seen.setdefault(target.binary_file, target)

	def freeze(self):
		"""Make the configuration read-only for the duration of the build"""
		for project in self.projects:
			project.env.freeze()
		for target in self.targets():
			target.env.freeze()
		self.env.freeze()

	def get_deps(self, *names):
		"""Get dependencies of each named node as a tree {name: tree}"""
		self.finalize()
		roots = names or self.nodes()
		graph = Graph.build(roots, self.lookup)
		return {self.lookup(root).name: graph.tree(self.lookup(root).name) for root in roots}

	def run(self, names=None, completed=(), jobs=None, fail_fast=False, timeout=None, force=False):
		"""Build the named nodes (default: everything) and their dependencies. Returns a RunReport."""
		engine = Engine(self, jobs=jobs, fail_fast=fail_fast, timeout=timeout, force=force)
		return engine.run(names, completed=completed)

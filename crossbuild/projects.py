import os
import shlex
import subprocess

from . import toolchain as toolchains
from .cmd import cmd
from .environment import EnvironmentScope
from .exceptions import BuildFailure, ConfigurationError, ContractViolation
from .graph import Node, BUILT, COMPLETED, UP_TO_DATE
from .state import hash_file, hash_tree
from .verbose_print import node_print


"""Build projects and their per-platform targets.

Both are configured through explicit config structs whose fields default to None,
meaning "use the convention". The conventions are applied exactly once, by finalize():
	a project is finalized when its first target is created (or when a run starts),
	a target is finalized when a run starts.
After that the resolved values are fixed and further configuration is an error.
"""


RELEASE = "release"
DEBUG = "debug"


class Config:
	"""A set of optional configuration fields. Unset fields are None."""
	FIELDS = ()

	def __init__(self, owner, **values):
		self._owner = owner
		for field in self.FIELDS:
			setattr(self, field, None)
		self.update(**values)

	def __repr__(self):
		fields = ", ".join(f"{field}={getattr(self, field)!r}" for field in self.FIELDS if getattr(self, field) is not None)
		return f"<{type(self).__name__} {fields}>"

	def update(self, **values):
		unknown = set(values) - set(self.FIELDS)
		if unknown:
			raise ConfigurationError(f"{self._owner}: unknown configuration {', '.join(sorted(unknown))}")
		for field, value in values.items():
			setattr(self, field, value)


class ProjectConfig(Config):
	"""
	source_dir: Directory containing the manifest. Required, must exist.
	destination_dir: Root of all build output. Defaults to SOURCE_DIR/target.
	base_name: Name used for staged artifacts. Defaults to the leaf name of source_dir.
	target_name: Name of the binary, without platform prefix/suffix. Defaults to base_name.
	manifest: Manifest path, relative to source_dir. Defaults to Cargo.toml.
	toolchain: Default toolchain selector for targets, see toolchain.resolve(). Defaults to "default".
	release: Default build mode for targets. Defaults to True.
	"""
	FIELDS = ("source_dir", "destination_dir", "base_name", "target_name", "manifest", "toolchain", "release")


class TargetConfig(Config):
	"""
	triple: Platform to build for. Defaults to the target's name. "" or "current" builds for the host.
	toolchain: Toolchain selector. Defaults to the project's.
	release: Build mode. Defaults to the project's.
	target_name: Binary name. Defaults to the project's.
	kind: toolchain.EXECUTABLE (default) or toolchain.DYNAMIC_LIBRARY.
	alias_of: Name of another target of the same project which is allowed to resolve to the same binary.
	"""
	FIELDS = ("triple", "toolchain", "release", "target_name", "kind", "alias_of")


class NamedContainer:
	"""An ordered name -> object mapping with a factory.
	create() constructs, registers and configures an object in a single call;
	names may only be used once."""
	def __init__(self, description, factory):
		self.description = description
		self.factory = factory
		self._items = {}

	def __repr__(self):
		return f"<NamedContainer {self.description}s: {', '.join(self._items)}>"

	def create(self, name, configure=None, **config):
		if not isinstance(name, str) or not name:
			raise ConfigurationError(f"Invalid {self.description} name {name!r}")
		if name in self._items:
			raise ConfigurationError(f"A {self.description} named {name!r} already exists")
		item = self.factory(name, **config)
		self._items[name] = item
		if configure is not None:
			configure(item)
		return item

	def add(self, name, item):
		"""Register an already-constructed object under name"""
		if name in self._items:
			raise ConfigurationError(f"A {self.description} named {name!r} already exists")
		self._items[name] = item
		return item

	def __getitem__(self, name):
		try:
			return self._items[name]
		except KeyError:
			raise KeyError(f"No {self.description} named {name!r}") from None

	def get(self, name, default=None):
		return self._items.get(name, default)

	def __contains__(self, name):
		return name in self._items

	def __iter__(self):
		return iter(self._items.values())

	def __len__(self):
		return len(self._items)

	def names(self):
		return list(self._items)


def relative_or_self(path, workdir):
	"""path relative to workdir if it lies inside it, otherwise path unchanged"""
	relative = os.path.relpath(path, workdir)
	if relative == ".." or relative.startswith(".." + os.sep):
		return path
	return relative


class Project:
	"""A native project (one manifest) that is built for any number of targets."""
	def __init__(self, registry, name, **config):
		self.registry = registry
		self.name = name
		self.config = ProjectConfig(f"project {name!r}", **config)
		self.env = EnvironmentScope(f"project {name!r}")
		self.env.extends_from(registry.env)
		self.prerequisites = []
		self.targets = NamedContainer("target", self._make_target)
		self.finalized = False
		self.build_node = ProjectBuild(self)

	def __repr__(self):
		return f"<Project {self.name!r}>"

	def _check_mutable(self):
		if self.finalized:
			raise ConfigurationError(f"Project {self.name!r} cannot be configured after its first target was created")

	def configure(self, **config):
		self._check_mutable()
		self.config.update(**config)
		return self

	def depends_on(self, *handles):
		"""Add prerequisites that every target of this project waits for"""
		self._check_mutable()
		self.prerequisites.extend(handles)
		return self

	# Environment

	def environment(self, name_or_mapping, value=None):
		self.env.environment(name_or_mapping, value)
		return self

	def extends_from(self, parent):
		self.env.extends_from(getattr(parent, "env", parent))
		return self

	@property
	def all_environment(self):
		return self.env.all_environment

	# Targets

	def _make_target(self, name, **config):
		self.finalize()
		return Target(self, name, **config)

	def new_target(self, name, configure=None, **config):
		return self.targets.create(name, configure, **config)

	def finalize(self):
		"""Resolve all conventions. Only has an effect the first time it is called."""
		if self.finalized:
			return
		config = self.config
		if config.source_dir is None:
			raise ConfigurationError(f"Project {self.name!r} has no source_dir")
		source_dir = os.path.abspath(os.fspath(config.source_dir))
		if not os.path.isdir(source_dir):
			raise ConfigurationError(f"Source directory of project {self.name!r} does not exist: {source_dir}")
		self.source_dir = source_dir
		if config.destination_dir is None:
			self.destination_dir = os.path.join(source_dir, "target")
		else:
			self.destination_dir = os.path.abspath(os.fspath(config.destination_dir))
		self.base_name = config.base_name or os.path.basename(source_dir)
		self.target_name = config.target_name or self.base_name
		self.manifest = os.path.join(source_dir, os.fspath(config.manifest or "Cargo.toml"))
		self.toolchain = "default" if config.toolchain is None else config.toolchain
		self.release = True if config.release is None else bool(config.release)
		self.finalized = True


class ProjectBuild(Node):
	"""Builds every target of a project. Named after the project, so "crossbuild PROJECT" or
	depends_on("PROJECT") means all of its targets, including ones created later."""
	def __init__(self, project):
		super().__init__(project.name)
		self.project = project

	def deps(self):
		return list(self.project.targets)

	def execute(self, context):
		return COMPLETED


class Target(Node):
	"""Builds one project for one platform by running the toolchain.

	The toolchain is invoked as:
		TOOLCHAIN build [--target TRIPLE] [--release] --target-dir DESTINATION --manifest-path MANIFEST
	in the project's source directory, and is expected to produce
		DESTINATION/[TRIPLE/](release|debug)/PREFIX TARGET_NAME SUFFIX
	"""
	def __init__(self, project, name, **config):
		super().__init__(f"{project.name}:{name}")
		self.project = project
		self.target = name
		self.config = TargetConfig(f"target {self.name!r}", **config)
		self.env = EnvironmentScope(f"target {self.name!r}")
		self.env.extends_from(project.env)
		self.dependencies = []
		self.finalized = False

	def _check_mutable(self):
		if self.finalized:
			raise ConfigurationError(f"Target {self.name!r} cannot be configured after the build has started")

	def configure(self, **config):
		self._check_mutable()
		self.config.update(**config)
		return self

	def depends_on(self, *handles):
		self._check_mutable()
		self.dependencies.extend(handles)
		return self

	def environment(self, name_or_mapping, value=None):
		self.env.environment(name_or_mapping, value)
		return self

	def extends_from(self, parent):
		self.env.extends_from(getattr(parent, "env", parent))
		return self

	@property
	def all_environment(self):
		return self.env.all_environment

	def finalize(self):
		if self.finalized:
			return
		project = self.project
		project.finalize()
		config = self.config
		self.triple = toolchains.normalize_triple(self.target if config.triple is None else config.triple)
		self.kind = config.kind or toolchains.EXECUTABLE
		self.release = project.release if config.release is None else bool(config.release)
		self.target_name = config.target_name or project.target_name
		# fails fast on missing toolchains, unknown triples and unknown kinds
		self.toolchain = toolchains.resolve(project.toolchain if config.toolchain is None else config.toolchain)
		self.file_name = self.toolchain.file_name(self.target_name, self.triple, self.kind)
		self.output_dir = project.destination_dir
		if self.triple is not None:
			self.output_dir = os.path.join(self.output_dir, self.triple)
		self.output_dir = os.path.join(self.output_dir, self.mode)
		self.binary_file = os.path.join(self.output_dir, self.file_name)
		self.finalized = True

	@property
	def mode(self):
		return RELEASE if self.release else DEBUG

	@property
	def is_current(self):
		return self.triple is None

	def deps(self):
		deps = list(self.project.prerequisites) + list(self.dependencies)
		if self.config.alias_of is not None:
			# both write the same file, so never build them at the same time
			deps.append(f"{self.project.name}:{self.config.alias_of}")
		return deps

	def arguments(self):
		"""The arguments passed to the toolchain executable"""
		args = ["build"]
		if self.triple is not None:
			args += ["--target", self.triple]
		if self.release:
			args.append("--release")
		args += ["--target-dir", self.project.destination_dir]
		args += ["--manifest-path", relative_or_self(self.project.manifest, self.project.source_dir)]
		return args

	def command(self, timeout=None):
		return (
			cmd(self.toolchain.executable, *self.arguments())
				.workdir(self.project.source_dir)
				.environment(self.env.process_environment())
				.capture()
				.timeout(timeout)
		)

	def inputs(self):
		"""Everything that, if changed, means the binary must be rebuilt. JSONable."""
		manifest = self.project.manifest
		return {
			"sources": hash_tree(
				self.project.source_dir,
				exclude=[self.project.destination_dir],
				skip=self.project.registry.state.owns,
			),
			"manifest": hash_file(manifest) if os.path.exists(manifest) else None,
			"toolchain": self.toolchain.identity(),
			"triple": self.triple,
			"mode": self.mode,
			"target_name": self.target_name,
			"kind": self.kind,
			"environment": self.env.all_environment,
		}

	def execute(self, context):
		try:
			inputs = self.inputs()
			reason = "a rebuild was forced" if context.force else context.state.needs_update(self.name, inputs, self.binary_file)
		except OSError as e:
			raise BuildFailure([self.name], f"Could not check whether the target is up to date: {e}") from e
		if reason is None:
			return UP_TO_DATE
		node_print(1, self.name, f"Building because {reason}")

		command = self.command(timeout=context.timeout)
		node_print(1, self.name, shlex.join(command.argv))
		try:
			proc = command.run(error_on_failure=False)
		except subprocess.TimeoutExpired as e:
			raise BuildFailure([self.name], f"Toolchain did not finish within {context.timeout} seconds and was killed", output=e.output) from None
		except OSError as e:
			raise BuildFailure([self.name], f"Could not run toolchain {self.toolchain.executable!r}: {e}") from None
		if proc.returncode != 0:
			raise BuildFailure([self.name], f"Toolchain exited with status {proc.returncode}", output=proc.stdout)

		if not os.path.isfile(self.binary_file):
			raise ContractViolation(
				[self.name],
				f"Toolchain reported success but did not create {self.binary_file}. "
				f"Does {self.toolchain.name} name {self.kind} binaries for {self.triple or 'the host'} differently?",
			)
		if proc.stdout:
			node_print(2, self.name, proc.stdout)
		try:
			context.state.save_result(self.name, inputs, hash_file(self.binary_file))
		except OSError as e:
			raise BuildFailure([self.name], f"Built, but could not record the result in the state file: {e}") from e
		return BUILT

import os
import shutil

from .exceptions import BuildFailure, ConfigurationError, ContractViolation
from .graph import Node, BUILT
from .verbose_print import node_print


class Staging(Node):
	"""Copies the binaries of finished targets into a shared output directory,
	named after a logical classifier rather than the platform triple:
		DIRECTORY/BASE_NAME-VERSION-CLASSIFIER.EXTENSION
	One target (normally the host build) is additionally copied as DIRECTORY/ALIAS.

	So N classified targets plus an alias always produce exactly N+1 files.
	A missing binary is a ContractViolation, never silently skipped.
	"""
	def __init__(self, name, directory, version, base_name=None, extension="exe", alias=None):
		super().__init__(name)
		self.directory = directory
		self.version = version
		self.base_name = base_name
		self.extension = extension
		self.classified = {}
		self.alias = None
		self.alias_name = alias

	def add(self, classifier, target):
		if classifier in self.classified:
			raise ConfigurationError(f"Staging {self.name!r} already has a target classified {classifier!r}")
		self.classified[classifier] = target
		return self

	def alias_target(self, target, name=None):
		"""Set the target copied under the classifier-free alias name"""
		if self.alias is not None:
			raise ConfigurationError(f"Staging {self.name!r} already has an alias target")
		self.alias = target
		if name is not None:
			self.alias_name = name
		return self

	def deps(self):
		deps = list(self.classified.values())
		if self.alias is not None:
			deps.append(self.alias)
		return deps

	def finalize(self):
		if not self.classified and self.alias is None:
			raise ConfigurationError(f"Staging {self.name!r} has no targets")
		if self.alias is not None and not self.alias_name:
			raise ConfigurationError(f"Staging {self.name!r} has an alias target but no alias name")
		if self.version is None or str(self.version) == "":
			raise ConfigurationError(f"Staging {self.name!r} has no version")

	def resolve_base_name(self, lookup):
		if self.base_name is not None:
			return self.base_name
		first = next(iter(self.classified.values()), self.alias)
		return lookup(first).project.base_name

	def copies(self, lookup):
		"""List of (target, destination path) pairs this staging produces"""
		base_name = self.resolve_base_name(lookup)
		copies = [
			(lookup(target), os.path.join(self.directory, f"{base_name}-{self.version}-{classifier}.{self.extension}"))
			for classifier, target in self.classified.items()
		]
		if self.alias is not None:
			copies.append((lookup(self.alias), os.path.join(self.directory, self.alias_name)))
		return copies

	def execute(self, context):
		copies = self.copies(context.lookup)
		# check everything first so we never leave a partial set of files behind
		for target, destination in copies:
			if not os.path.isfile(target.binary_file):
				raise ContractViolation([self.name, target.name], f"Binary {target.binary_file} does not exist, cannot stage it")
		try:
			os.makedirs(self.directory, exist_ok=True)
			for target, destination in copies:
				node_print(1, self.name, f"{target.binary_file} -> {destination}")
				shutil.copy2(target.binary_file, destination)
		except OSError as e:
			raise BuildFailure([self.name], f"Could not copy binaries into {self.directory}: {e}") from e
		return BUILT

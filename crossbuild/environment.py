import os

from .exceptions import ConfigurationError


class EnvironmentScope:
	"""A set of environment variables which may inherit from other scopes.

	Local values are set with environment(name, value) or environment(mapping).
	Parents are added with extends_from(); the effective environment (all_environment)
	is every parent's effective environment merged in the order they were added,
	followed by the local values. Later entries win.

	A value of None means "unset this variable": it removes the key if a parent
	(or the process environment, see process_environment()) provides it.
	Other values are coerced to string.

	all_environment is recomputed on every read, so it always reflects the latest
	configuration. Once a run starts the scope is frozen and can no longer be changed.
	"""
	def __init__(self, name):
		self.name = name
		self.parents = []
		self.local = {}
		self.frozen = False

	def __repr__(self):
		return f"<EnvironmentScope {self.name!r}>"

	def _check_mutable(self):
		if self.frozen:
			raise ConfigurationError(f"Environment of {self.name} cannot be changed after the build has started")

	def extends_from(self, parent):
		self._check_mutable()
		if parent is self or self in parent.ancestors():
			raise ConfigurationError(f"Environment of {self.name} cannot extend from {parent.name}: it would inherit from itself")
		self.parents.append(parent)
		return self

	def environment(self, name_or_mapping, value=None):
		"""Set one variable (environment(name, value)) or many (environment({name: value}))."""
		self._check_mutable()
		if isinstance(name_or_mapping, str):
			items = [(name_or_mapping, value)]
		else:
			items = dict(name_or_mapping).items()
		for name, value in items:
			self.local[str(name)] = None if value is None else str(value)
		return self

	def ancestors(self):
		"""All scopes this one inherits from, directly or indirectly"""
		result = []
		for parent in self.parents:
			for scope in [parent] + parent.ancestors():
				if scope not in result:
					result.append(scope)
		return result

	def _merged(self):
		"""Merge with removal markers (None) kept, so a child can tell that a parent unset a key"""
		merged = {}
		for parent in self.parents:
			merged.update(parent._merged())
		merged.update(self.local)
		return merged

	@property
	def all_environment(self):
		return {name: value for name, value in self._merged().items() if value is not None}

	def process_environment(self, base=None):
		"""The full environment for a child process: base (default: os.environ)
		with this scope's variables applied, including removals."""
		env = dict(os.environ if base is None else base)
		for name, value in self._merged().items():
			if value is None:
				env.pop(name, None)
			else:
				env[name] = value
		return env

	def freeze(self):
		self.frozen = True
		for parent in self.parents:
			parent.freeze()

from .exceptions import BuildFailure, StepError
from .graph import Node, BUILT


class Step(Node):
	"""An opaque prerequisite, eg. something that produces a resource bundle the native
	build embeds. The engine runs its action (if any) once all of deps have completed,
	but never looks at what it produced.

	A step with no action acts as a pure synchronization point, or as a placeholder for work
	done outside crossbuild which the caller marks as completed when starting a run.
	"""
	def __init__(self, name, action=None, deps=()):
		super().__init__(name)
		self.action = action
		self._deps = list(deps)

	def depends_on(self, *handles):
		self._deps.extend(handles)
		return self

	def deps(self):
		return list(self._deps)

	def execute(self, context):
		if self.action is None:
			return BUILT
		try:
			self.action()
		except StepError as e:
			raise BuildFailure([self.name], str(e)) from None
		except Exception as e:
			# raise ... from e will include e's traceback in the output
			raise BuildFailure([self.name], "Step action raised exception") from e
		return BUILT

	def __call__(self, fn):
		"""Allows using a step as a decorator to set its action:
			@registry.step("bundle")
			def bundle():
				...
		"""
		self.action = fn
		return self


from .verbose_print import color

class CrossBuildError(Exception):
	"""General exception that should be reported to the user"""


def chain_str(chain):
	return " -> ".join(color.cyan(name) for name in chain)


class ConfigurationError(CrossBuildError):
	"""The build description is unusable: an unresolvable toolchain, an unknown platform triple,
	a duplicate name, a dependency cycle, etc. Always raised before any process is started."""


class NodeError(CrossBuildError):
	"""
	A failure while running a node of the build graph.
	Has attached metadata indicating what node failed and the chain of nodes that led to it.
	"""
	def __init__(self, chain, message, output=None):
		super().__init__(message)
		self.chain = tuple(chain)
		self.message = message
		self.output = output

	@property
	def node(self):
		return self.chain[-1] if self.chain else None

	def __str__(self):
		text = f"{chain_str(self.chain)}: {self.message}"
		if self.output:
			text += "\n" + self.output.rstrip("\n")
		return text


class BuildFailure(NodeError):
	"""The toolchain (or a step action) failed. Only nodes depending on the failed one are affected."""


class ContractViolation(NodeError):
	"""The toolchain claimed success but the expected file is not where the naming rules say it is,
	or staging was asked to copy a binary that does not exist."""


class StepError(CrossBuildError):
	"""This can be raised inside a step action. It will be wrapped into a BuildFailure and reported
	as just the message, without a traceback. This is suitable for explicitly failing
	with an error message, eg. because some precondition does not hold."""

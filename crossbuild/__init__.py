"""Orchestrates native builds for multiple platforms through an external toolchain.

	registry = Registry()
	native = registry.new_project("native", source_dir="native", toolchain="cross")
	native.new_target("current", toolchain="default")
	native.new_target("x86_64-pc-windows-gnu")
	report = registry.run()
"""

from .exceptions import BuildFailure, ConfigurationError, ContractViolation, CrossBuildError, StepError
from .registry import Registry
from .toolchain import DYNAMIC_LIBRARY, EXECUTABLE, ToolChain, name_for, resolve

import os
import shutil
import sys

from .exceptions import ConfigurationError


"""Toolchain resolution and binary naming conventions.

A toolchain is an executable that accepts the cargo-style build arguments
(see engine.Engine), plus the naming rule for what it produces:
	name_for(triple, kind) -> (prefix, suffix)
The binary for a target is then prefix + target name + suffix.

Platform triples are grouped into families by their OS component:
	*-windows-*       eg. x86_64-pc-windows-gnu
	*-apple-darwin*   eg. aarch64-apple-darwin
	*-linux-*         eg. x86_64-unknown-linux-gnu
A triple of None, "" or "current" means the host, and uses the host's family.
"""


EXECUTABLE = "executable"
DYNAMIC_LIBRARY = "dynamic-library"
KINDS = (EXECUTABLE, DYNAMIC_LIBRARY)

WINDOWS = "windows"
DARWIN = "darwin"
LINUX = "linux"

# family: {kind: (prefix, suffix)}
NAMING = {
	WINDOWS: {
		EXECUTABLE: ("", ".exe"),
		DYNAMIC_LIBRARY: ("", ".dll"),
	},
	DARWIN: {
		EXECUTABLE: ("", ""),
		DYNAMIC_LIBRARY: ("lib", ".dylib"),
	},
	LINUX: {
		EXECUTABLE: ("", ""),
		DYNAMIC_LIBRARY: ("lib", ".so"),
	},
}

# Executables looked up on PATH for the named selectors
SELECTORS = {
	"default": "cargo",
	"cross": "cross",
}


def is_current(triple):
	return triple is None or triple in ("", "current")


def normalize_triple(triple):
	"""Returns None for the host platform, otherwise the triple unchanged"""
	return None if is_current(triple) else triple


def host_family():
	if sys.platform in ("win32", "cygwin"):
		return WINDOWS
	if sys.platform == "darwin":
		return DARWIN
	# every other host we can run on (linux, the BSDs) names things the same way
	return LINUX


def family_of(triple):
	"""Returns the naming family for a triple, or raises ConfigurationError if it isn't recognized."""
	if is_current(triple):
		return host_family()
	parts = triple.split("-")
	if len(parts) < 3 or not all(parts):
		raise ConfigurationError(f"Malformed platform triple {triple!r}")
	os_parts = parts[1:]
	if "windows" in os_parts:
		return WINDOWS
	if any(part.startswith("darwin") for part in os_parts) and "apple" in os_parts:
		return DARWIN
	if "linux" in os_parts:
		return LINUX
	raise ConfigurationError(f"Unknown platform triple {triple!r}: don't know how binaries are named on it")


def name_for(triple, kind=EXECUTABLE):
	"""Returns (prefix, suffix) for an artifact of the given kind built for triple."""
	if kind not in KINDS:
		raise ConfigurationError(f"Unknown artifact kind {kind!r}, expected one of: {', '.join(KINDS)}")
	return NAMING[family_of(triple)][kind]


class ToolChain:
	"""A resolved toolchain: a name (the selector it was resolved from, or "custom")
	and the path to its executable."""
	def __init__(self, name, executable):
		self.name = name
		self.executable = executable

	def __repr__(self):
		return f"<ToolChain {self.name} {self.executable!r}>"

	def __eq__(self, other):
		if not isinstance(other, ToolChain):
			return NotImplemented
		return (self.name, self.executable) == (other.name, other.executable)

	def __hash__(self):
		return hash((self.name, self.executable))

	def identity(self):
		"""A JSONable value which changes if a different toolchain would be used"""
		return {"name": self.name, "executable": self.executable}

	def name_for(self, triple, kind=EXECUTABLE):
		return name_for(triple, kind)

	def file_name(self, target_name, triple, kind=EXECUTABLE):
		prefix, suffix = self.name_for(triple, kind)
		return f"{prefix}{target_name}{suffix}"


def resolve(selector, search_path=None):
	"""Resolve a toolchain selector to a ToolChain. selector may be:
		"default": cargo from the search path
		"cross": cross from the search path
		a ToolChain: returned as-is
		anything else: taken as the path to a custom executable
	Never falls back to another toolchain, raises ConfigurationError instead.
	search_path defaults to $PATH.
	"""
	if isinstance(selector, ToolChain):
		return selector
	if selector is None:
		selector = "default"
	if isinstance(selector, os.PathLike):
		selector = os.fspath(selector)
	if not isinstance(selector, str) or not selector:
		raise ConfigurationError(f"Invalid toolchain selector {selector!r}")

	if selector in SELECTORS:
		program = SELECTORS[selector]
		executable = shutil.which(program, path=search_path)
		if executable is None:
			raise ConfigurationError(
				f"Toolchain {selector!r} requires {program!r} on the search path, but it was not found. "
				"Install it or set the toolchain explicitly."
			)
		return ToolChain(selector, executable)

	executable = os.path.abspath(selector)
	if not (os.path.isfile(executable) and os.access(executable, os.X_OK)):
		raise ConfigurationError(f"Custom toolchain {selector!r} is not an executable file")
	return ToolChain("custom", executable)

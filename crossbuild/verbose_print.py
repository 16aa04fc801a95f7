
"""Mechanism for printing at various verbosity levels.
Use set_verbosity to set the global verbosity level.
verbose_print(v, text) wraps print(text) but only runs
if v <= the global verbosity level.

Builds run on several threads at once, so every print takes a lock
and multi-line text is never interleaved with another thread's output.

Also exposes color formatting, which can optionally be disabled.
"""

import re
import sys
import threading

verbosity = 0
_lock = threading.Lock()

class Colors:
	enabled = False

	def set(self, enabled):
		self.enabled = enabled

	def make_method(format_code):
		def color_method(self, text):
			return f"\x1b[{format_code}m{text}\x1b[m" if self.enabled else text
		return color_method

	bold = make_method("1")
	red = make_method("31")
	green = make_method("32")
	yellow = make_method("33")
	blue = make_method("34")
	cyan = make_method("36")

color = Colors()

def set_verbosity(new_verbosity, color_enabled=None):
	"""Set the global verbosity. If color_enabled is None, color is used only when stdout is a tty."""
	global verbosity
	verbosity = new_verbosity
	if color_enabled is None:
		color_enabled = sys.stdout.isatty()
	color.set(color_enabled)

def verbose_print(v, text, file=None):
	if v <= verbosity:
		text = str(text)
		if color.enabled:
			text = stack_colors(text)
		with _lock:
			# resolved at call time so that redirected/captured stdout is respected
			print(text, file=sys.stdout if file is None else file)

def node_print(v, name, text, file=None):
	"""verbose_print() with every line prefixed by the node name, for output of parallel builds"""
	prefix = color.cyan(f"[{name}]")
	lines = str(text).rstrip("\n").split("\n")
	verbose_print(v, "\n".join(f"{prefix} {line}" for line in lines), file=file)

def stack_colors(input):
	"""Takes some text containing SGI escapes and restructures them so that each reset
	escape restores the previous context instead of resetting completely.
	So eg. "{red} foo {blue} bar {reset} baz" would show foo in red, bar in blue,
	then baz in red instead of default."""
	output = ""
	stack = []
	while True:
		escape = re.search("\x1b\\[([0-9;]*)m", input)
		if escape is None:
			output += input
			break
		output += input[:escape.start()]
		input = input[escape.end():]
		code = escape.group(1)
		if code == "":
			if stack:
				stack.pop()
			code = stack[-1] if stack else ""
		else:
			stack.append(code)
		output += f"\x1b[{code}m"
	return output

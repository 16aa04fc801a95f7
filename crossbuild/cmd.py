import os
import subprocess
import sys

"""Provides a builder for running child processes in an ergonomic way."""

class Command:
	"""
	A builder for options when running child processes.
	Immutable, all methods return a new Command.

	Methods are additive, so you can define command "stems". eg:
		cargo = Command()("cargo")
		build = cargo("build", "--release")
		build("--target", "aarch64-apple-darwin").run()
	"""
	_COPY_ATTRS = ["_args", "_env", "_replace_env", "_stdin", "_stdout", "_stderr", "_workdir", "_timeout"]

	def __init__(self):
		self._args = ()
		self._env = {}
		self._replace_env = False
		self._stdin = subprocess.DEVNULL
		self._stdout = None # None means inherit ours
		self._stderr = None
		self._workdir = "."
		self._timeout = None

	def __repr__(self):
		return f"<Command {self._args} in {self._workdir!r}>"

	def _copy(self, **updates):
		new = Command()
		for attr in self._COPY_ATTRS:
			setattr(new, attr, updates.get(attr, getattr(self, attr)))
		return new

	@property
	def argv(self):
		return list(self._args)

	def args(self, args):
		"""Append args onto the argument list. Args will be coerced to string."""
		return self._copy(_args = self._args + tuple(os.fspath(arg) if isinstance(arg, os.PathLike) else str(arg) for arg in args))

	def __call__(self, *args):
		"""Return a Command with given args. It does not run immediately,
		but can be run with .run() when ready.

		cmd(*args) is equivalent to cmd.args(args) but is intended to be ergonomic with stemming.
		"""
		return self.args(args)

	def env(self, **env):
		"""Set or update environment variables on top of our own environment.
		Values will be coerced to string."""
		return self._copy(_env = self._env | {k: str(v) for k, v in env.items()})

	def environment(self, env):
		"""Use exactly the given mapping as the child's environment,
		instead of extending our own environment."""
		return self._copy(_env = {str(k): str(v) for k, v in env.items()}, _replace_env = True)

	def stdin(self, value):
		"""Set stdin to a file object or None (meaning /dev/null)."""
		return self._copy(_stdin=subprocess.DEVNULL if value is None else value)

	def stdout(self, value):
		"""Set stdout to a file object, subprocess.PIPE or None (meaning inherit)."""
		return self._copy(_stdout=value)

	def stderr(self, value):
		"""As stdout(), but also accepts the value subprocess.STDOUT to redirect stderr to stdout."""
		return self._copy(_stderr=value)

	def capture(self):
		"""Capture stdout and stderr together as the (text) stdout of the result."""
		return self._copy(_stdout=subprocess.PIPE, _stderr=subprocess.STDOUT)

	def workdir(self, dir):
		"""Set working directory of command. Note it is relative to the main program's working directory,
			not any already-set working directory on the command.
		"""
		return self._copy(_workdir=dir)

	def timeout(self, seconds):
		"""Kill the command if it runs for longer than this many seconds.
		The blocking methods then raise subprocess.TimeoutExpired. None means no deadline."""
		return self._copy(_timeout=seconds)

	def run(self, error_on_failure=True):
		"""Actually execute the command. Blocks until completed.
		By default, will raise an error if the command exits non-zero.
		Returns a subprocess.CompletedProcess.
		"""
		proc = self._run()
		if error_on_failure:
			proc.check_returncode()
		return proc

	def get_output(self, error_on_failure=True):
		"""Like run(), executes the command. Unlike run, returns stdout as a string.
		*Note this overrides any configured stdout behaviour*.
		"""
		proc = self.stdout(subprocess.PIPE)._run()
		if error_on_failure:
			proc.check_returncode()
		return proc.stdout

	def _run(self):
		"""Common code for blocking execution methods"""
		proc = None
		try:
			proc = self._make_proc()
			try:
				stdout, stderr = proc.communicate(timeout=self._timeout)
			except subprocess.TimeoutExpired:
				proc.kill()
				stdout, stderr = proc.communicate()
				raise subprocess.TimeoutExpired(self._args, self._timeout, output=stdout, stderr=stderr) from None
			retcode = proc.wait()
		except BaseException:
			# attempt to kill before returning
			try:
				if proc is not None and proc.poll() is None:
					proc.kill()
			except ProcessLookupError:
				pass # process not existing is fine, ignore it.
			raise
		return subprocess.CompletedProcess(self._args, retcode, stdout, stderr)

	def _make_proc(self):
		"""Common code for creating the Popen object"""
		if not self._args:
			raise ValueError("Command has no arguments")
		return subprocess.Popen(
			self._args,
			env = self._env if self._replace_env else os.environ | self._env,
			close_fds = True,
			stdin = self._stdin,
			stdout = self._stdout,
			stderr = self._stderr,
			cwd = self._workdir,
			text = True,
			errors = "replace",
		)


# Root instance from which copies get made
cmd = Command()

def run(*args):
	"""Shortcut for cmd(*args).run(), with the output going to our own stdout/stderr"""
	sys.stdout.flush()
	return cmd(*args).run()

import sys
import os
import traceback

import argh

from .registry import Registry
from .exceptions import CrossBuildError
from .verbose_print import set_verbosity, verbose_print

@argh.arg("names", help="Targets (PROJECT:TARGET), projects (all of their targets) and steps to build. Defaults to everything.")
@argh.arg("--buildfile", "-f", help="Buildfile filename. Defaults to Buildfile or Buildfile.py")
@argh.arg("--statefile", help="Filepath to store cache state")
@argh.arg("--force", help="Rebuild everything even if we think we don't need to")
@argh.arg("--graph", help="Instead of building, show a dependency graph")
@argh.arg("--jobs", "-j", type=int, help="Maximum number of builds to run at once. Defaults to the number of CPUs.")
@argh.arg("--fail-fast", help="Stop starting new builds after the first failure")
@argh.arg("--timeout", type=float, help="Kill a toolchain process after this many seconds")
@argh.arg("--completed", action="append", help="Treat this step as already done (may be given multiple times)")
@argh.arg("--no-color", help="Never use colors in output")
@argh.arg("-q", "--quiet", action="count", default=0, help=" ".join([
	"Specify once to restrict output to errors only. Specify twice to never output anything.",
]))
@argh.arg("-v", "--verbose", action="count", default=0, help=" ".join([
	"Specify multiple times to print additional information:",
	"(Once) Print up-to-date targets, why targets are rebuilt, and the commands run.",
	"(Twice) Print toolchain output of successful builds.",
	"(Thrice) Print dependency resolution.",
]))
def main(
	*names, buildfile=None, statefile=".crossbuild-state", force=False, graph=False, jobs=None,
	fail_fast=False, timeout=None, completed=None, no_color=False, quiet=0, verbose=0,
):
	set_verbosity(verbose - quiet, False if no_color else None)
	try:
		if buildfile is None:
			candidates = ["Buildfile", "Buildfile.py"]
			for candidate in candidates:
				if os.path.exists(candidate):
					buildfile = candidate
					break
			else:
				raise CrossBuildError("Could not find Buildfile, are you in the right directory?")

		with Registry(statefile) as registry:
			registry.load_buildfile(buildfile)

			if graph:
				print_graph(registry.get_deps(*names))
				return

			report = registry.run(
				names or None,
				completed=completed or (),
				jobs=jobs,
				fail_fast=fail_fast,
				timeout=timeout,
				force=force,
			)
			if not report.ok:
				failed = report.with_status("failed")
				skipped = report.with_status("skipped")
				raise CrossBuildError(f"Build failed: {len(failed)} failed, {len(skipped)} skipped")

	except CrossBuildError as e:
		verbose_print(-1, e, file=sys.stderr)
		if e.__cause__ is not None:
			traceback.print_exception(e.__cause__)
		sys.exit(1)


def print_graph(graph, indent=0):
	for value, children in graph.items():
		# This is an unconditional print (no verbosity) because it was specifically requested to be output
		print("  " * indent + value)
		print_graph(children, indent=indent+1)

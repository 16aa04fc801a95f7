"""Tests for the crossbuild command line."""

import os
import textwrap

import pytest

from crossbuild import verbose_print
from crossbuild.main import main


@pytest.fixture
def workspace(tmp_path, source_dir, fake_cargo, call_log, monkeypatch):
	"""A directory with a Buildfile building the fake project for two platforms"""
	monkeypatch.chdir(tmp_path)
	(tmp_path / "Buildfile.py").write_text(textwrap.dedent(f"""\
		environment("FAKE_LOG", {os.fspath(call_log)!r})

		bundle = step("bundle")

		native = project(
			"native",
			source_dir="native",
			target_name="app",
			base_name="launcher",
			toolchain={os.fspath(fake_cargo)!r},
		)
		native.depends_on(bundle)

		release = staging("release", "libs", "1.0", alias="launcher")
		release.alias_target(native.new_target("current"))
		release.add("windows-x86_64", native.new_target("x86_64-pc-windows-gnu"))
	"""))
	yield tmp_path
	verbose_print.set_verbosity(0, False)


class TestMain:
	def test_builds_everything(self, workspace, calls):
		main(no_color=True)
		assert len(calls()) == 2
		assert sorted(os.listdir(workspace / "libs")) == ["launcher", "launcher-1.0-windows-x86_64.exe"]
		assert (workspace / ".crossbuild-state").exists()

	def test_second_run_builds_nothing(self, workspace, calls):
		main(no_color=True)
		main(no_color=True)
		assert len(calls()) == 2

	def test_named_target(self, workspace, calls):
		main("native:current", no_color=True)
		assert len(calls()) == 1
		assert not (workspace / "libs").exists()

	def test_named_project(self, workspace, calls):
		main("native", no_color=True)
		assert len(calls()) == 2
		assert not (workspace / "libs").exists()

	def test_graph(self, workspace, calls, capsys):
		main("release", graph=True, no_color=True)
		out = capsys.readouterr().out
		assert out.splitlines()[0] == "release"
		assert "  native:current" in out
		assert "    bundle" in out
		assert calls() == []

	def test_failure_exits_nonzero(self, workspace, capsys):
		with open(workspace / "Buildfile.py", "a") as f:
			f.write('native.targets["current"].environment("FAKE_FAIL", "1")\n')
		with pytest.raises(SystemExit) as excinfo:
			main(no_color=True)
		assert excinfo.value.code == 1
		err = capsys.readouterr().err
		assert "Build failed" in err

	def test_configuration_error(self, workspace, capsys):
		with open(workspace / "Buildfile.py", "a") as f:
			f.write('native.new_target("wasm32-unknown-unknown")\n')
		with pytest.raises(SystemExit):
			main(no_color=True)
		assert "wasm32-unknown-unknown" in capsys.readouterr().err

	def test_completed_step(self, workspace):
		with open(workspace / "Buildfile.py", "a") as f:
			f.write('bundle.action = lambda: 1 / 0\n')
		main(completed=["bundle"], no_color=True)

	def test_no_buildfile(self, tmp_path, monkeypatch, capsys):
		monkeypatch.chdir(tmp_path)
		with pytest.raises(SystemExit):
			main(no_color=True)
		assert "Could not find Buildfile" in capsys.readouterr().err

	def test_buildfile_exception(self, tmp_path, monkeypatch, capsys):
		monkeypatch.chdir(tmp_path)
		(tmp_path / "Buildfile").write_text("1 / 0\n")
		with pytest.raises(SystemExit):
			main(no_color=True)
		err = capsys.readouterr().err
		assert "Unhandled exception while loading Buildfile" in err
		assert "ZeroDivisionError" in err

"""Pytest configuration and fixtures for crossbuild tests."""

import os
import stat
import sys
import textwrap

import pytest

from crossbuild import Registry


FAKE_CARGO = textwrap.dedent("""\
	import os
	import sys
	import time

	args = sys.argv[1:]
	log = os.environ.get("FAKE_LOG")
	if log:
		with open(log, "a") as f:
			f.write(" ".join(args) + "\\n")

	if os.environ.get("FAKE_SLEEP"):
		time.sleep(float(os.environ["FAKE_SLEEP"]))

	if os.environ.get("FAKE_FAIL"):
		print("error: could not compile `app`", file=sys.stderr)
		sys.exit(1)

	triple = args[args.index("--target") + 1] if "--target" in args else None
	mode = "release" if "--release" in args else "debug"
	output_dir = args[args.index("--target-dir") + 1]
	if triple:
		output_dir = os.path.join(output_dir, triple)
	output_dir = os.path.join(output_dir, mode)

	name = os.environ.get("FAKE_NAME", "app")
	if triple and "windows" in triple:
		name += ".exe"
	elif triple is None and sys.platform == "win32":
		name += ".exe"

	print(f"Compiling app for {triple or 'host'} ({mode})")
	if not os.environ.get("FAKE_NO_OUTPUT"):
		os.makedirs(output_dir, exist_ok=True)
		with open(os.path.join(output_dir, name), "w") as f:
			f.write(f"{triple} {mode}\\n")
""")


def _write_executable(path, source):
	path.write_text(f"#!{sys.executable}\n" + source)
	path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
	return path


@pytest.fixture
def fake_cargo(tmp_path):
	"""Path to an executable that behaves like `cargo build` for our purposes.
	Its behaviour is controlled by FAKE_* environment variables."""
	bin_dir = tmp_path / "bin"
	bin_dir.mkdir()
	return _write_executable(bin_dir / "cargo", FAKE_CARGO)


@pytest.fixture
def fake_path(fake_cargo, monkeypatch):
	"""Puts the fake cargo (and a fake cross) on PATH"""
	_write_executable(fake_cargo.parent / "cross", FAKE_CARGO)
	monkeypatch.setenv("PATH", str(fake_cargo.parent))
	return fake_cargo.parent


@pytest.fixture
def source_dir(tmp_path):
	"""A minimal native project"""
	source = tmp_path / "native"
	(source / "src").mkdir(parents=True)
	(source / "Cargo.toml").write_text('[package]\nname = "app"\nversion = "0.1.0"\n')
	(source / "src" / "main.rs").write_text('fn main() { println!("hello"); }\n')
	return source


@pytest.fixture
def call_log(tmp_path):
	return tmp_path / "calls.log"


@pytest.fixture
def registry(tmp_path, call_log):
	with Registry(os.fspath(tmp_path / "state.json")) as registry:
		registry.environment("FAKE_LOG", os.fspath(call_log))
		yield registry


@pytest.fixture
def project(registry, source_dir, fake_cargo):
	return registry.new_project(
		"native",
		source_dir=source_dir,
		target_name="app",
		toolchain=os.fspath(fake_cargo),
	)


@pytest.fixture
def calls(call_log):
	"""Returns the argument lists the fake toolchain has been invoked with so far"""
	def read():
		if not call_log.exists():
			return []
		return call_log.read_text().splitlines()
	return read

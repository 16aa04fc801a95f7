"""Tests for crossbuild.staging module."""

import os

import pytest

from crossbuild.engine import Engine
from crossbuild.exceptions import BuildFailure, ConfigurationError, ContractViolation
from crossbuild.graph import BUILT, FAILED, SKIPPED


CLASSIFIERS = {
	"linux-aarch_64": "aarch64-unknown-linux-gnu",
	"windows-x86_64": "x86_64-pc-windows-gnu",
	"osx-aarch_64": "aarch64-apple-darwin",
}


@pytest.fixture
def libs(tmp_path):
	return tmp_path / "libs"


@pytest.fixture
def release(registry, project, libs):
	project.configure(base_name="launcher")
	staging = registry.staging("release", libs, "1.2.0", alias="protoc-gen-lw-java")
	for classifier, triple in CLASSIFIERS.items():
		staging.add(classifier, project.new_target(triple))
	staging.alias_target(project.new_target("current"))
	return staging


class TestStaging:
	def test_stages_n_plus_one_files(self, registry, release, libs):
		report = registry.run()
		assert report.ok
		assert report["release"].status == BUILT
		assert sorted(os.listdir(libs)) == sorted([
			"launcher-1.2.0-linux-aarch_64.exe",
			"launcher-1.2.0-windows-x86_64.exe",
			"launcher-1.2.0-osx-aarch_64.exe",
			"protoc-gen-lw-java",
		])

	def test_copies_the_right_binaries(self, registry, release, libs):
		registry.run()
		assert (libs / "launcher-1.2.0-windows-x86_64.exe").read_text() == "x86_64-pc-windows-gnu release\n"
		assert (libs / "protoc-gen-lw-java").read_text() == "None release\n"

	def test_runs_after_all_targets(self, registry, release):
		order = registry.run().graph.order()
		assert order[-1] == "release"

	def test_explicit_base_name_and_extension(self, registry, project, libs):
		staging = registry.staging("release", libs, "2.0", base_name="tool", extension="bin")
		staging.add("linux-x86_64", project.new_target("x86_64-unknown-linux-gnu"))
		assert registry.run().ok
		assert os.listdir(libs) == ["tool-2.0-linux-x86_64.bin"]

	def test_current_may_also_be_classified(self, registry, project, libs):
		current = project.new_target("current")
		staging = registry.staging("release", libs, "1.0", alias="app")
		staging.add("current", current)
		staging.alias_target(current)
		assert registry.run().ok
		assert sorted(os.listdir(libs)) == ["app", "native-1.0-current.exe"]

	def test_failed_target_skips_staging(self, registry, project, libs):
		staging = registry.staging("release", libs, "1.0")
		staging.add("linux-x86_64", project.new_target("x86_64-unknown-linux-gnu").environment("FAKE_FAIL", "1"))
		staging.add("linux-aarch_64", project.new_target("aarch64-unknown-linux-gnu"))
		report = registry.run()
		assert report["release"].status == SKIPPED
		assert not libs.exists()

	def test_missing_binary_is_contract_violation(self, registry, release, libs):
		registry.finalize()
		with pytest.raises(ContractViolation) as excinfo:
			release.execute(Engine(registry))
		assert excinfo.value.chain[0] == "release"
		assert not libs.exists()

	def test_directory_is_a_file(self, registry, release, libs):
		libs.write_text("not a directory")
		report = registry.run()
		result = report["release"]
		assert not report.ok
		assert result.status == FAILED
		assert isinstance(result.error, BuildFailure)
		assert isinstance(result.error.__cause__, OSError)
		assert report["native:current"].status == BUILT
		assert libs.read_text() == "not a directory"


class TestStagingConfiguration:
	def test_duplicate_classifier(self, registry, project):
		staging = registry.staging("release", "libs", "1.0")
		staging.add("linux", project.new_target("x86_64-unknown-linux-gnu"))
		with pytest.raises(ConfigurationError):
			staging.add("linux", project.new_target("aarch64-unknown-linux-gnu"))

	def test_alias_needs_name(self, registry, project):
		staging = registry.staging("release", "libs", "1.0")
		staging.alias_target(project.new_target("current"))
		with pytest.raises(ConfigurationError, match="alias name"):
			registry.run()

	def test_empty(self, registry):
		registry.staging("release", "libs", "1.0")
		with pytest.raises(ConfigurationError, match="no targets"):
			registry.run()

	def test_needs_version(self, registry, project):
		staging = registry.staging("release", "libs", "")
		staging.add("current", project.new_target("current"))
		with pytest.raises(ConfigurationError, match="version"):
			registry.run()

"""Builds a launcher binary for the host and, with CROSS=1, for every release platform,
then stages them as launcher-VERSION-CLASSIFIER.exe plus an unclassified copy of the host build.

The launcher embeds a resource bundle, which must be copied into the source tree
before cargo runs.
"""

import shutil

VERSION = os.environ.get("VERSION", "0.0.0")

@step("bundle")
def bundle():
	os.makedirs("native/resources", exist_ok=True)
	shutil.copy("build/libs/all.jar", "native/resources/all.jar")

def configure_native(p):
	p.configure(
		source_dir="native",
		destination_dir="native/target",
		target_name="embedded-jar-launcher",
		toolchain="cross",
	)
	p.depends_on(bundle)
	p.environment("RUST_BACKTRACE", "1")

native = project("native", configure_native, base_name="launcher")

release = staging("release", "build/libs", VERSION, alias="launcher")

# the host can always be built with the host toolchain
release.alias_target(native.new_target("current", toolchain="default"))

if os.environ.get("CROSS", "0") != "0":
	release.add("linux-aarch_64", native.new_target("aarch64-unknown-linux-gnu"))
	release.add("linux-x86_64", native.new_target("x86_64-unknown-linux-gnu"))
	# cross can't build for macOS
	release.add("osx-aarch_64", native.new_target("aarch64-apple-darwin", toolchain="default"))
	release.add("osx-x86_64", native.new_target("x86_64-apple-darwin", toolchain="default"))
	release.add("windows-x86_64", native.new_target("x86_64-pc-windows-gnu"))

from setuptools import setup, find_packages

setup(
	name='crossbuild',
	version='0.1.0',
	description='Builds a native project for several platforms with an external toolchain and stages the binaries',
	packages=find_packages(exclude=['tests', 'tests.*']),
	python_requires='>=3.10',
	install_requires=[
		'argh',
	],
	extras_require={
		'test': ['pytest'],
	},
	entry_points = {
		'console_scripts': ['crossbuild=crossbuild.__main__:entrypoint'],
	},
)

import fcntl
import json
import logging
import os
import threading
from hashlib import sha256
from uuid import uuid4

from .exceptions import CrossBuildError


def hash_file(filepath):
	"""Hashes the contents of the given file, returning a string."""
	hash = sha256()
	with open(filepath, "rb") as f:
		# stream in 64KiB chunks to avoid excessive memory usage
		while True:
			chunk = f.read(64 * 1024)
			if not chunk:
				break
			hash.update(chunk)
	return hash.hexdigest()


def hash_tree(root, exclude=(), skip=None):
	"""Hashes every file under root (relative path and contents), returning a string.
	Directories in exclude, and anything under them, are skipped.
	If given, skip(path) is called with the absolute path of each file and returns True to leave it out.
	"""
	exclude = {os.path.abspath(path) for path in exclude}
	hash = sha256()
	for dirpath, dirnames, filenames in os.walk(root):
		# prune in place so os.walk doesn't descend into them, and sort for a stable order
		dirnames[:] = sorted(
			name for name in dirnames
			if os.path.abspath(os.path.join(dirpath, name)) not in exclude
		)
		for name in sorted(filenames):
			path = os.path.join(dirpath, name)
			if skip is not None and skip(os.path.abspath(path)):
				continue
			relative = os.path.relpath(path, root)
			hash.update(relative.encode() + b"\0")
			try:
				hash.update(hash_file(path).encode() + b"\0")
			except FileNotFoundError:
				# broken symlink or file removed while walking
				hash.update(b"missing\0")
	return hash.hexdigest()


class State:
	"""Encapsulates a JSON value which is saved to file.
	The file path uses a file lock to ensure only one crossbuild instance is using it.
	If path is None, the state is kept in memory only.
	Safe to use from multiple threads.
	"""
	def __init__(self, path=None):
		self.path = path
		self.file = None
		self.lock = threading.Lock()
		self.data = {}
		if path is None:
			return

		while True:
			# Open or create file. We create it if it doesn't exist so that we can take the lock.
			# We keep it open to hold the lock.
			self.file = open(self.path, "a+")
			# Unlocking is implicit when the file is later closed.
			try:
				fcntl.flock(self.file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
			except BlockingIOError:
				self.file.close()
				raise CrossBuildError(f"The state file {self.path!r} is locked - is another instance of crossbuild running?") from None
			# The file may have been replaced by another instance's save() between our open and our lock.
			# (st_dev, st_ino) uniquely identifies a file
			old_stat = os.fstat(self.file.fileno())
			new_stat = os.stat(self.path)
			if (old_stat.st_dev, old_stat.st_ino) != (new_stat.st_dev, new_stat.st_ino):
				logging.warning(f"State file {self.path!r} changed between open and lock, retrying")
				self.file.close()
				continue
			break

		self.file.seek(0)
		content = self.file.read()
		if content.strip():
			try:
				self.data = json.loads(content)
			except ValueError as e:
				self.close()
				raise CrossBuildError(f"The state file {self.path!r} is corrupt, delete it to rebuild everything") from e

	def save(self):
		if self.path is None:
			return
		# To prevent partial writes, write to a tempfile then replace the state file with it.
		# The new file is locked BEFORE renaming it.
		temp_path = f"{self.path}.{uuid4()}.tmp"
		new_file = open(temp_path, "w")
		new_file.write(json.dumps(self.data, sort_keys=True) + "\n")
		new_file.flush()
		fcntl.flock(new_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
		os.rename(temp_path, self.path)
		self.file.close()
		# keep the lock on the new file by keeping it open
		self.file = new_file

	def close(self):
		if self.file is not None:
			self.file.close()
			self.file = None

	def owns(self, path):
		"""True if path is the state file or one of the temp files save() writes next to it"""
		if self.path is None:
			return False
		own = os.path.abspath(os.fspath(self.path))
		path = os.path.abspath(os.fspath(path))
		return path == own or (path.startswith(own + ".") and path.endswith(".tmp"))

	def needs_update(self, name, inputs, output):
		"""Compare inputs to the inputs recorded at the last successful build of name,
		and check the output file is still the one that was built.
		Returns a reason string if name needs rebuilding, or else None.
		"""
		with self.lock:
			entry = self.data.get(name)
		if entry is None:
			return "it has not been built before"
		old_inputs = entry["inputs"]
		if old_inputs != inputs:
			changed = sorted(key for key in set(inputs) | set(old_inputs) if inputs.get(key) != old_inputs.get(key))
			return "its inputs changed: {}".format(", ".join(changed))
		if not os.path.isfile(output):
			return f"{output} does not exist"
		if hash_file(output) != entry["output"]:
			return f"{output} was modified since it was built"
		return None

	def save_result(self, name, inputs, output_hash):
		"""Record a successful build of name with the given inputs, producing an output with the given hash."""
		with self.lock:
			self.data[name] = {
				"inputs": inputs,
				"output": output_hash,
			}
			self.save()


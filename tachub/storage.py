import os
import json
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .errors import MediumUnavailable

logger = logging.getLogger(__name__)


class KeyValueMedium(ABC):
	"""A persistent string-keyed, string-valued store (browser localStorage style)."""

	@abstractmethod
	def get(self, key: str) -> Optional[str]:
		"""Return the stored value or None. Raises MediumUnavailable on I/O failure."""

	@abstractmethod
	def set(self, key: str, value: str):
		"""Store `value`, overwriting unconditionally. Raises MediumUnavailable on failure."""

	def has(self, key: str) -> bool:
		return self.get(key) is not None


class MemoryMedium(KeyValueMedium):
	"""Process-local medium, for tests and throwaway sessions."""

	def __init__(self, initial: Optional[Dict[str, str]] = None):
		self._data: Dict[str, str] = dict(initial or {})
		self._lock = threading.Lock()

	def get(self, key: str) -> Optional[str]:
		with self._lock:
			return self._data.get(key)

	def set(self, key: str, value: str):
		with self._lock:
			self._data[key] = value


class FileMedium(KeyValueMedium):
	"""
	Keeps all slots in one JSON object on disk.
	Writes go to a temp file in the same directory and are moved over the
	old file, so a crash mid-write leaves the previous contents intact.
	"""

	def __init__(self, path):
		self.path = Path(path)
		self._lock = threading.Lock()

	def _read_all(self) -> Dict[str, str]:
		if not self.path.exists():
			return {}
		try:
			with open(self.path, 'r', encoding='utf-8') as f:
				data = json.load(f)
		except (OSError, json.JSONDecodeError) as e:
			raise MediumUnavailable(f"Cannot read storage file {self.path}: {e}")
		if not isinstance(data, dict):
			raise MediumUnavailable(f"Storage file {self.path} does not hold an object")
		return data

	def _write_all(self, data: Dict[str, str]):
		try:
			self.path.parent.mkdir(parents=True, exist_ok=True)
			fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
			try:
				with os.fdopen(fd, 'w', encoding='utf-8') as f:
					json.dump(data, f)
				os.replace(tmp_name, self.path)
			except BaseException:
				if os.path.exists(tmp_name):
					os.remove(tmp_name)
				raise
		except OSError as e:
			raise MediumUnavailable(f"Cannot write storage file {self.path}: {e}")
		logger.debug(f"Wrote {len(data)} slot(s) to {self.path}")

	def get(self, key: str) -> Optional[str]:
		with self._lock:
			value = self._read_all().get(key)
		return value if isinstance(value, str) else None

	def set(self, key: str, value: str):
		with self._lock:
			data = self._read_all()
			data[key] = value
			self._write_all(data)

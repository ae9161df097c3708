import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from .vault import VaultStore

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path(".tachub")


@dataclass
class ConsoleConfig:
	"""Configuration for a console session and its server."""
	storage_path: str = str(DEFAULT_HOME / "storage.json")
	slot_key: str = VaultStore.STORAGE_KEY
	host: str = "127.0.0.1"
	port: int = 8080
	debug: bool = False
	autosave: bool = False  # persist after every filesystem mutation
	autosave_interval: int = 300  # seconds between background saves while unlocked, 0 disables
	backup_dir: str = str(DEFAULT_HOME / "backups")

	def to_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: dict) -> 'ConsoleConfig':
		# Only use known fields
		known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
		return cls(**known)

	def save(self, path: Path):
		"""Save config to JSON file."""
		path = Path(path)
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, 'w', encoding='utf-8') as f:
			json.dump(self.to_dict(), f, indent=2)
		logger.debug(f"Saved console config to {path}")

	@classmethod
	def load(cls, path: Optional[Path]) -> 'ConsoleConfig':
		"""Load config from JSON file, or return defaults if not found."""
		if path is None:
			return cls()
		path = Path(path)
		if not path.exists():
			logger.debug(f"No config found at {path}, using defaults")
			return cls()

		try:
			with open(path, 'r', encoding='utf-8') as f:
				data = json.load(f)
			if not isinstance(data, dict):
				raise ValueError("config must be a JSON object")
			return cls.from_dict(data)
		except (json.JSONDecodeError, IOError, ValueError) as e:
			logger.warning(f"Failed to load config: {e}, using defaults")
			return cls()

	def validate(self) -> bool:
		"""Validate config consistency."""
		if not self.slot_key:
			logger.error("Vault slot key cannot be empty")
			return False
		if not isinstance(self.port, int) or not 1 <= self.port <= 65535:
			logger.error(f"Invalid port: {self.port}")
			return False
		if not isinstance(self.autosave_interval, int) or self.autosave_interval < 0:
			logger.error(f"Invalid autosave interval: {self.autosave_interval}")
			return False
		return True

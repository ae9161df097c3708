import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .errors import InvalidDocument
from .models import Character, Note, SavedImage, Snippet, VirtualNode, seed_root

logger = logging.getLogger(__name__)

KNOWN_KEYS = ("characters", "vault", "vfs")


@dataclass
class VaultRecords:
	"""The notes / images / snippets section of the application state."""
	notes: List[Note] = field(default_factory=list)
	images: List[SavedImage] = field(default_factory=list)
	snippets: List[Snippet] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"notes": [n.to_dict() for n in self.notes],
			"images": [i.to_dict() for i in self.images],
			"snippets": [s.to_dict() for s in self.snippets],
		}

	@classmethod
	def from_dict(cls, data: Any) -> 'VaultRecords':
		if not isinstance(data, dict):
			return cls()
		return cls(
			notes=[Note.from_dict(n) for n in data.get("notes") or []],
			images=[SavedImage.from_dict(i) for i in data.get("images") or []],
			snippets=[Snippet.from_dict(s) for s in data.get("snippets") or []],
		)

	def copy(self) -> 'VaultRecords':
		return VaultRecords.from_dict(self.to_dict())


@dataclass
class Snapshot:
	"""
	The whole application state as persisted in the vault and in backups.
	Top-level keys this version does not know are kept in `extra` and
	written back unchanged.
	"""
	vfs: VirtualNode = field(default_factory=seed_root)
	characters: List[Character] = field(default_factory=list)
	vault: VaultRecords = field(default_factory=VaultRecords)
	extra: Dict[str, Any] = field(default_factory=dict)

	def to_dict(self) -> dict:
		data = dict(self.extra)
		data.update({
			"characters": [c.to_dict() for c in self.characters],
			"vault": self.vault.to_dict(),
			"vfs": self.vfs.to_dict(),
		})
		return data

	@classmethod
	def from_dict(cls, data: Any) -> 'Snapshot':
		"""
		Build a snapshot from a decoded document.
		A missing `vfs` falls back to the seed layout.
		"""
		if not isinstance(data, dict):
			raise InvalidDocument("Snapshot document must be a JSON object")
		try:
			vfs = VirtualNode.from_dict(data["vfs"]) if data.get("vfs") else seed_root()
			if not vfs.is_dir:
				raise ValueError("Filesystem root must be a directory")
			snapshot = cls(
				vfs=vfs,
				characters=[Character.from_dict(c) for c in data.get("characters") or []],
				vault=VaultRecords.from_dict(data.get("vault")),
				extra={k: v for k, v in data.items() if k not in KNOWN_KEYS},
			)
		except (TypeError, ValueError) as e:
			raise InvalidDocument(f"Malformed snapshot document: {e}")
		if snapshot.extra:
			logger.debug(f"Carrying unknown snapshot keys: {sorted(snapshot.extra)}")
		return snapshot

	def to_bytes(self) -> bytes:
		return json.dumps(self.to_dict(), separators=(',', ':')).encode('utf-8')

	@classmethod
	def from_bytes(cls, data: bytes) -> 'Snapshot':
		try:
			decoded = json.loads(data.decode('utf-8'))
		except (UnicodeDecodeError, json.JSONDecodeError) as e:
			raise InvalidDocument(f"Snapshot is not valid JSON: {e}")
		return cls.from_dict(decoded)

	def to_json(self, indent: int = 2) -> str:
		"""Plaintext backup document."""
		return json.dumps(self.to_dict(), indent=indent)

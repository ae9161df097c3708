import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ConsoleConfig
from .errors import (AuthenticationFailed, InvalidDocument, KindMismatch, MediumUnavailable,
	NotAuthenticated, NotFound, RecordNotFound)
from .models import Character, Note, SavedImage, Snippet, VirtualNode, new_record_id, now_ms, seed_root
from .paths import ROOT, resolve_path
from .snapshot import Snapshot, VaultRecords
from .vault import VaultStore
from .vfs import VirtualFileSystem

logger = logging.getLogger(__name__)

RECORD_KINDS = ("notes", "images", "snippets", "characters")


class ConsoleSession:
	"""
	The single owner of the live application state: the filesystem, the
	records and the password that unlocks the vault.
	Nothing here is global; whoever holds the session holds the state.
	"""

	def __init__(self, store: VaultStore, config: Optional[ConsoleConfig] = None):
		self.store = store
		self.config = config or ConsoleConfig()
		self.vfs = VirtualFileSystem()
		self.characters: List[Character] = []
		self.records = VaultRecords()
		self.cwd = ROOT
		self.last_save_error: Optional[str] = None

		self._password: Optional[str] = None
		self._extra: Dict[str, Any] = {}
		self._installing = False
		self._dirty = False
		self._autosave_task: Optional[asyncio.Task] = None
		self.vfs.subscribe(self._on_vfs_change)

	@property
	def authenticated(self) -> bool:
		return self._password is not None

	def _require_auth(self):
		if not self.authenticated:
			raise NotAuthenticated("Session is locked")

	# --- Login / logout ---

	async def login(self, password: str):
		"""
		Unlock the vault with `password`, creating it on first use.
		Raises AuthenticationFailed if the vault cannot be opened.
		"""
		if not password:
			raise AuthenticationFailed("Password required")

		if not self.store.has_vault():
			logger.info("No vault found, creating a new one")
			await self.store.save(password, Snapshot(vfs=self.vfs.root))

		snapshot = await self.store.load(password)
		if snapshot is None:
			raise AuthenticationFailed("Incorrect password or corrupted vault")

		self._password = password
		self._install(snapshot)
		logger.info("Session unlocked")

	async def logout(self):
		await self.flush()
		self._password = None
		self._install(Snapshot(vfs=seed_root()))
		logger.info("Session locked")

	async def change_password(self, old_password: str, new_password: str):
		"""Re-save the live state under a new password."""
		self._require_auth()
		if old_password != self._password:
			raise AuthenticationFailed("Current password is incorrect")
		if not new_password:
			raise AuthenticationFailed("New password required")

		# The live password only moves once the vault is actually under the new one.
		try:
			await self.store.save(new_password, self.snapshot())
		except MediumUnavailable as e:
			self.last_save_error = str(e)
			raise
		self._password = new_password
		self.last_save_error = None
		logger.info("Vault password changed")

	def _install(self, snapshot: Snapshot):
		self._installing = True
		try:
			self.characters = list(snapshot.characters)
			self.records = snapshot.vault
			self._extra = dict(snapshot.extra)
			self.vfs.replace_root(snapshot.vfs)
			self.cwd = ROOT
		finally:
			self._installing = False

	# --- Persistence ---

	def snapshot(self) -> Snapshot:
		"""
		Capture the current state. The filesystem root is immutable and
		shared; records are copied so later edits don't leak into it.
		"""
		return Snapshot(
			vfs=self.vfs.root,
			characters=[Character.from_dict(c.to_dict()) for c in self.characters],
			vault=self.records.copy(),
			extra=dict(self._extra),
		)

	async def persist(self) -> bool:
		self._require_auth()
		try:
			result = await self.store.save(self._password, self.snapshot())
		except MediumUnavailable as e:
			self.last_save_error = str(e)
			raise
		self.last_save_error = None
		return result

	def _on_vfs_change(self, version: int, root: VirtualNode):
		if self._installing or not self.config.autosave or not self.authenticated:
			return
		self._dirty = True
		if self._autosave_task is not None and not self._autosave_task.done():
			return
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.warning(f"Autosave skipped for filesystem version {version}: no event loop running")
			return
		self._autosave_task = loop.create_task(self._autosave())

	async def _autosave(self):
		# Changes that land while a save is running are picked up by the next pass.
		while self._dirty and self.authenticated:
			self._dirty = False
			try:
				await self.persist()
			except MediumUnavailable as e:
				logger.error(f"Autosave failed: {e}")
				return

	async def periodic_save(self, interval: float):
		"""Persist every `interval` seconds while unlocked. Runs until cancelled."""
		while True:
			await asyncio.sleep(interval)
			if not self.authenticated:
				continue
			try:
				await self.persist()
			except MediumUnavailable as e:
				logger.error(f"Periodic save failed: {e}")

	async def flush(self):
		"""Wait for any pending autosave to finish."""
		if self._autosave_task is not None:
			await self._autosave_task
			self._autosave_task = None

	# --- Export / import ---

	def export_document(self) -> dict:
		self._require_auth()
		return self.snapshot().to_dict()

	def export_to(self, path: Optional[Path] = None) -> Path:
		"""Write a plaintext backup. Defaults to a dated file in the backup dir."""
		self._require_auth()
		if path is None:
			path = Path(self.config.backup_dir) / f"tactical-hub-backup-{date.today().isoformat()}.json"
		path = Path(path)
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, 'w', encoding='utf-8') as f:
			f.write(self.snapshot().to_json())
		logger.info(f"Exported backup to {path}")
		return path

	async def import_document(self, document: Any):
		"""
		Replace the live records (and the filesystem, if the document has
		one) with the document's, then save through the vault.
		"""
		self._require_auth()
		if not isinstance(document, dict):
			raise InvalidDocument("Import document must be a JSON object")

		snapshot = Snapshot.from_dict(document)
		if not document.get("vfs"):
			snapshot.vfs = self.vfs.root
		self._install(snapshot)
		logger.info("Imported backup document")
		await self.persist()

	async def import_from(self, path: Path):
		try:
			with open(path, 'r', encoding='utf-8') as f:
				document = json.load(f)
		except json.JSONDecodeError as e:
			raise InvalidDocument(f"Invalid import file: {e}")
		await self.import_document(document)

	# --- Working directory ---

	def resolve(self, path: str, cwd: Optional[str] = None) -> str:
		return resolve_path(path, cwd or self.cwd)

	def change_directory(self, path: str) -> str:
		target = self.resolve(path)
		node = self.vfs.get(target)
		if node is None:
			raise NotFound("No such directory", target)
		if not node.is_dir:
			raise KindMismatch("Not a directory", target)
		self.cwd = target
		return target

	# --- Records ---

	def records_of(self, kind: str) -> list:
		if kind == "notes":
			return self.records.notes
		if kind == "images":
			return self.records.images
		if kind == "snippets":
			return self.records.snippets
		if kind == "characters":
			return self.characters
		raise KeyError(kind)

	@staticmethod
	def _unique_id(existing: list) -> str:
		taken = {r.id for r in existing}
		record_id = new_record_id()
		while record_id in taken:
			record_id = str(int(record_id) + 1)
		return record_id

	@staticmethod
	def _find(records: list, record_id: str):
		for record in records:
			if record.id == record_id:
				return record
		raise RecordNotFound(f"No record with id {record_id}")

	def delete_record(self, kind: str, record_id: str) -> bool:
		self._require_auth()
		records = self.records_of(kind)
		records.remove(self._find(records, record_id))
		logger.debug(f"Deleted {kind} record {record_id}")
		return True

	def add_note(self, title: str = "New Note", content: str = "") -> Note:
		self._require_auth()
		note = Note(id=self._unique_id(self.records.notes), title=title, content=content)
		self.records.notes.append(note)
		return note

	def update_note(self, note_id: str, content: Optional[str] = None, title: Optional[str] = None) -> Note:
		self._require_auth()
		note = self._find(self.records.notes, note_id)
		if content is not None:
			note.content = content
		if title is not None:
			note.title = title
		note.timestamp = now_ms()
		return note

	def delete_note(self, note_id: str) -> bool:
		return self.delete_record("notes", note_id)

	def save_image(self, url: str, prompt: str = "") -> SavedImage:
		self._require_auth()
		image = SavedImage(id=self._unique_id(self.records.images), url=url, prompt=prompt)
		self.records.images.append(image)
		return image

	def delete_image(self, image_id: str) -> bool:
		return self.delete_record("images", image_id)

	def add_snippet(self, title: str = "", content: str = "") -> Snippet:
		self._require_auth()
		snippet = Snippet(id=self._unique_id(self.records.snippets), title=title or "Untitled", content=content)
		self.records.snippets.append(snippet)
		return snippet

	def delete_snippet(self, snippet_id: str) -> bool:
		return self.delete_record("snippets", snippet_id)

	def save_character(self, character: Character) -> Character:
		"""Insert, or replace the character with the same id."""
		self._require_auth()
		if not character.id:
			character.id = self._unique_id(self.characters)
		for i, existing in enumerate(self.characters):
			if existing.id == character.id:
				self.characters[i] = character
				return character
		self.characters.append(character)
		return character

	def delete_character(self, character_id: str) -> bool:
		return self.delete_record("characters", character_id)

	def add_record(self, kind: str, data: dict):
		"""Create a record of `kind` from a loose dict (used by the HTTP layer)."""
		if kind == "notes":
			return self.add_note(data.get("title") or "New Note", data.get("content", ""))
		if kind == "images":
			return self.save_image(data.get("url", ""), data.get("prompt", ""))
		if kind == "snippets":
			return self.add_snippet(data.get("title", ""), data.get("content", ""))
		if kind == "characters":
			character = Character.from_dict(data)
			if "id" not in data:
				character.id = ""
			return self.save_character(character)
		raise KeyError(kind)

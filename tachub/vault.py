import asyncio
import logging
from typing import Optional

from .crypto import VaultBlob, VaultCodec
from .errors import CryptoFailure, InvalidDocument, MediumUnavailable
from .snapshot import Snapshot
from .storage import KeyValueMedium

logger = logging.getLogger(__name__)


class VaultStore:
	"""
	Keeps the whole application snapshot, encrypted under one password, in a
	single slot of a key-value medium.

	Key derivation, encryption and medium I/O run in worker threads. Saves
	are serialized through one lock, and each save's payload is fixed when
	`save` is called, so the slot always ends up holding the snapshot of the
	last save to complete.
	"""
	STORAGE_KEY = "TACTICAL_HUB_VAULT_V2"

	def __init__(self, medium: KeyValueMedium, slot_key: str = STORAGE_KEY):
		self.medium = medium
		self.slot_key = slot_key
		self._save_lock: Optional[asyncio.Lock] = None
		self.saves_completed = 0

	def _lock(self) -> asyncio.Lock:
		if self._save_lock is None:
			self._save_lock = asyncio.Lock()
		return self._save_lock

	@property
	def saving(self) -> bool:
		return self._save_lock is not None and self._save_lock.locked()

	def has_vault(self) -> bool:
		"""True if the slot holds anything. Does not try to decrypt it."""
		return self.medium.has(self.slot_key)

	async def save(self, password: str, snapshot: Snapshot) -> bool:
		"""
		Encrypt `snapshot` and overwrite the slot.
		Raises MediumUnavailable if the write fails; nothing is swallowed.
		"""
		payload = snapshot.to_bytes()

		async with self._lock():
			blob = await asyncio.to_thread(VaultCodec.encrypt, payload, password)
			try:
				await asyncio.to_thread(self.medium.set, self.slot_key, blob.encode())
			except MediumUnavailable as e:
				logger.error(f"Vault save failed, data NOT persisted: {e}")
				raise
			self.saves_completed += 1

		logger.info(f"Vault saved ({len(payload)} bytes plaintext, save #{self.saves_completed})")
		return True

	async def load(self, password: str) -> Optional[Snapshot]:
		"""
		Read and decrypt the slot.
		Returns None when there is no vault, when the password is wrong and
		when the data is corrupted; callers cannot tell these apart.
		"""
		text = await asyncio.to_thread(self.medium.get, self.slot_key)
		if text is None:
			logger.debug("No vault in storage")
			return None

		try:
			blob = VaultBlob.decode(text)
			payload = await asyncio.to_thread(VaultCodec.decrypt, blob, password)
		except CryptoFailure:
			return None

		try:
			snapshot = Snapshot.from_bytes(payload)
		except InvalidDocument as e:
			logger.warning(f"Vault decrypted but holds an unreadable snapshot: {e}")
			return None

		logger.info("Vault loaded")
		return snapshot

import os
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.backends import default_backend

from .errors import CryptoFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultBlob:
	"""
	Output of one encryption.
	Framed as salt (16 bytes) + nonce (12 bytes) + ciphertext with GCM tag.
	"""
	salt: bytes
	nonce: bytes
	ciphertext: bytes

	def to_bytes(self) -> bytes:
		return self.salt + self.nonce + self.ciphertext

	@classmethod
	def from_bytes(cls, data: bytes) -> 'VaultBlob':
		header = VaultCodec.SALT_SIZE + VaultCodec.NONCE_SIZE
		if len(data) < header + VaultCodec.TAG_SIZE:
			raise CryptoFailure("Invalid vault blob: too short")
		return cls(
			salt=data[:VaultCodec.SALT_SIZE],
			nonce=data[VaultCodec.SALT_SIZE:header],
			ciphertext=data[header:],
		)

	def encode(self) -> str:
		"""Text form for storage media that only hold strings."""
		return base64.b64encode(self.to_bytes()).decode('ascii')

	@classmethod
	def decode(cls, text: str) -> 'VaultBlob':
		try:
			data = base64.b64decode(text.encode('ascii'), validate=True)
		except (binascii.Error, UnicodeEncodeError, ValueError):
			raise CryptoFailure("Invalid vault blob: not base64")
		return cls.from_bytes(data)


class VaultCodec:
	"""
	Password based authenticated encryption using PBKDF2-SHA256 and AES-256-GCM.
	Every encryption draws a fresh salt and nonce, so the same payload and
	password never produce the same blob twice.
	Compatible with Web Crypto API (deriveKey PBKDF2 -> AES-GCM).
	"""
	SALT_SIZE = 16
	NONCE_SIZE = 12  # 96 bits for AES-GCM
	TAG_SIZE = 16
	KEY_SIZE = 32    # 256 bits for AES-256
	ITERATIONS = 100000

	@classmethod
	def derive_key(cls, password: str, salt: bytes) -> bytes:
		"""Derive encryption key from password using PBKDF2-SHA256."""
		kdf = PBKDF2HMAC(
			algorithm=hashes.SHA256(),
			length=cls.KEY_SIZE,
			salt=salt,
			iterations=cls.ITERATIONS,
			backend=default_backend()
		)
		return kdf.derive(password.encode('utf-8'))

	@classmethod
	def encrypt(cls, plaintext: bytes, password: str,
				salt: Optional[bytes] = None, nonce: Optional[bytes] = None) -> VaultBlob:
		"""
		Encrypt data using AES-256-GCM under a key derived from `password`.
		`salt` and `nonce` are only meant to be pinned by tests.
		"""
		salt = salt if salt is not None else os.urandom(cls.SALT_SIZE)
		nonce = nonce if nonce is not None else os.urandom(cls.NONCE_SIZE)

		key = cls.derive_key(password, salt)
		ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
		return VaultBlob(salt=salt, nonce=nonce, ciphertext=ciphertext)

	@classmethod
	def decrypt(cls, blob: VaultBlob, password: str) -> bytes:
		"""
		Decrypt a blob. Raises CryptoFailure on a wrong password or any
		corruption; the GCM tag check cannot tell the two apart.
		"""
		key = cls.derive_key(password, blob.salt)
		try:
			return AESGCM(key).decrypt(blob.nonce, blob.ciphertext, None)
		except (InvalidTag, ValueError):
			logger.warning("Vault decryption failed - incorrect password or corrupted data")
			raise CryptoFailure("Decryption failed - incorrect password or corrupted data")

	@classmethod
	def get_config_for_client(cls) -> dict:
		"""Parameters a Web Crypto client needs to open the same blobs."""
		return {
			"iterations": cls.ITERATIONS,
			"keyLength": cls.KEY_SIZE,
			"saltLength": cls.SALT_SIZE,
			"nonceLength": cls.NONCE_SIZE,
			"algorithm": "AES-GCM"
		}

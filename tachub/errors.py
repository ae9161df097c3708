from typing import Optional


class TachubError(Exception):
	"""Base for every error raised by tachub."""


# --- Filesystem ---

class VFSError(TachubError):
	def __init__(self, message: str, path: Optional[str] = None):
		super().__init__(message)
		self.path = path

	def __str__(self) -> str:
		base = super().__str__()
		if self.path:
			return f"{base} (path={self.path})"
		return base


class PathUnaddressable(VFSError):
	"""An intermediate segment is missing or is not a directory."""


class AlreadyExists(VFSError):
	pass


class NotFound(VFSError):
	pass


class KindMismatch(VFSError):
	"""Expected a file and found a directory, or the other way round."""


# --- Vault ---

class VaultError(TachubError):
	pass


class CryptoFailure(VaultError):
	"""
	Authenticated decryption failed.
	Wrong password and corrupted/tampered data are indistinguishable here.
	"""


class MediumUnavailable(VaultError):
	"""The backing key-value storage could not be read or written."""


# --- Session ---

class SessionError(TachubError):
	pass


class AuthenticationFailed(SessionError):
	pass


class NotAuthenticated(SessionError):
	pass


class InvalidDocument(SessionError):
	pass


class RecordNotFound(SessionError):
	pass

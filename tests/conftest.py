"""Shared test fixtures and configuration."""

import pytest
import pytest_asyncio

from tachub.config import ConsoleConfig
from tachub.crypto import VaultCodec
from tachub.session import ConsoleSession
from tachub.storage import MemoryMedium
from tachub.vault import VaultStore
from tachub.vfs import VirtualFileSystem


@pytest.fixture
def fast_kdf(monkeypatch):
	"""Cut PBKDF2 iterations for tests that only care about plumbing."""
	monkeypatch.setattr(VaultCodec, "ITERATIONS", 1000)


@pytest.fixture
def vfs():
	"""A filesystem with the seed layout."""
	return VirtualFileSystem()


@pytest.fixture
def medium():
	return MemoryMedium()


@pytest.fixture
def store(medium):
	return VaultStore(medium)


@pytest.fixture
def config(tmp_path):
	return ConsoleConfig(
		storage_path=str(tmp_path / "storage.json"),
		backup_dir=str(tmp_path / "backups"),
	)


@pytest.fixture
def session(store, config, fast_kdf):
	"""A locked session over an empty in-memory vault."""
	return ConsoleSession(store, config)


@pytest_asyncio.fixture
async def unlocked(session):
	"""A session unlocked with password 'hunter2'."""
	await session.login("hunter2")
	return session

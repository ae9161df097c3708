from .crypto import VaultBlob, VaultCodec
from .models import NodeKind, VirtualNode
from .paths import resolve_path
from .session import ConsoleSession
from .snapshot import Snapshot
from .storage import FileMedium, MemoryMedium
from .vault import VaultStore
from .vfs import VirtualFileSystem

__version__ = "2.1.0"

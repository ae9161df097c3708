import logging
from typing import Callable, List, Optional, Tuple

from .errors import AlreadyExists, KindMismatch, NotFound, PathUnaddressable
from .models import VirtualNode, seed_root
from .paths import ROOT, join_path, resolve_path, split_path

logger = logging.getLogger(__name__)

Listener = Callable[[int, VirtualNode], None]


class VirtualFileSystem:
	"""
	A single rooted tree of files and directories addressed by '/'-paths.

	Every mutation produces a new root (untouched subtrees are shared with the
	old one) and swaps it in with one assignment, so anyone holding `root`
	sees either the whole old tree or the whole new one. `version` increases
	on every swap and subscribers are called with (version, root).

	Paths are canonicalized against '/' before use. Working directories are
	the caller's concern: resolve relative paths with `resolve_path` first.
	"""

	def __init__(self, root: Optional[VirtualNode] = None):
		self._root = root if root is not None else seed_root()
		if not self._root.is_dir:
			raise KindMismatch("Filesystem root must be a directory", ROOT)
		self._version = 0
		self._listeners: List[Listener] = []

	@property
	def root(self) -> VirtualNode:
		return self._root

	@property
	def version(self) -> int:
		return self._version

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register a change listener. Returns a callable that unregisters it."""
		self._listeners.append(listener)

		def unsubscribe():
			if listener in self._listeners:
				self._listeners.remove(listener)
		return unsubscribe

	def replace_root(self, root: VirtualNode):
		"""Install a whole new tree (e.g. one restored from the vault)."""
		if not root.is_dir:
			raise KindMismatch("Filesystem root must be a directory", ROOT)
		self._commit(root, "replace", ROOT)

	# --- Resolution ---

	def _locate(self, path: str) -> Tuple[List[str], Optional[VirtualNode], Optional[VirtualNode]]:
		"""
		Walk `path` from the root.
		Returns (segments, parent, node). `node` is None when only the last
		segment is missing. `parent` is None only for the root itself.
		Raises PathUnaddressable when an intermediate segment is missing or is a file.
		"""
		canonical = resolve_path(path, ROOT)
		parts = split_path(canonical)
		if not parts:
			return parts, None, self._root

		parent = self._root
		for part in parts[:-1]:
			found = parent.child(part)
			if found is None:
				raise PathUnaddressable(f"No such directory '{part}'", canonical)
			if not found.is_dir:
				raise PathUnaddressable(f"'{part}' is not a directory", canonical)
			parent = found

		return parts, parent, parent.child(parts[-1])

	def get(self, path: str) -> Optional[VirtualNode]:
		"""Return the node at `path`, or None if it does not exist."""
		try:
			_, _, node = self._locate(path)
		except PathUnaddressable:
			return None
		return node

	# --- Reads ---

	def list(self, path: str) -> Optional[List[VirtualNode]]:
		"""Children of the directory at `path`, or None if it is not a directory."""
		node = self.get(path)
		if node is not None and node.is_dir:
			return list(node.children)
		return None

	def read_file(self, path: str) -> Optional[str]:
		"""Content of the file at `path`, or None for directories and missing paths."""
		node = self.get(path)
		if node is not None and node.is_file:
			return node.content
		return None

	# --- Mutations ---

	def create_file(self, path: str, content: str = "") -> bool:
		parts, _, node = self._locate(path)
		self._check_creatable(path, node)
		self._append(parts, VirtualNode.file(parts[-1], content=content), "create_file")
		return True

	def create_directory(self, path: str) -> bool:
		parts, _, node = self._locate(path)
		self._check_creatable(path, node)
		self._append(parts, VirtualNode.directory(parts[-1]), "create_directory")
		return True

	def update_file(self, path: str, content: str) -> bool:
		"""Replace a file's content, or create the file if it does not exist yet."""
		parts, _, node = self._locate(path)
		if node is None:
			self._append(parts, VirtualNode.file(parts[-1], content=content), "create_file")
			return True
		if not node.is_file:
			raise KindMismatch("Cannot write content to a directory", resolve_path(path))

		name = parts[-1]
		def update(directory: VirtualNode) -> VirtualNode:
			return directory.with_children(
				child.with_content(content) if child.name == name else child
				for child in directory.children
			)
		self._commit(self._rebuild(self._root, parts[:-1], update), "update_file", join_path(parts))
		return True

	def delete(self, path: str) -> bool:
		"""Remove the node at `path` and, for directories, its whole subtree."""
		parts, parent, node = self._locate(path)
		if parent is None:
			raise PathUnaddressable("The root cannot be deleted", ROOT)
		if node is None:
			raise NotFound("No such file or directory", join_path(parts))

		name = parts[-1]
		def update(directory: VirtualNode) -> VirtualNode:
			return directory.with_children(c for c in directory.children if c.name != name)
		self._commit(self._rebuild(self._root, parts[:-1], update), "delete", join_path(parts))
		return True

	# --- Internals ---

	@staticmethod
	def _check_creatable(path: str, node: Optional[VirtualNode]):
		if node is not None:
			raise AlreadyExists("A node already exists at this path", resolve_path(path))

	def _append(self, parts: List[str], new_node: VirtualNode, action: str):
		def update(directory: VirtualNode) -> VirtualNode:
			return directory.with_children(directory.children + (new_node,))
		self._commit(self._rebuild(self._root, parts[:-1], update), action, join_path(parts))

	def _rebuild(self, node: VirtualNode, parts: List[str],
				update: Callable[[VirtualNode], VirtualNode]) -> VirtualNode:
		"""Copy the nodes along `parts`, applying `update` to the last one."""
		if not parts:
			return update(node)
		name = parts[0]
		return node.with_children(
			self._rebuild(child, parts[1:], update) if child.name == name else child
			for child in node.children
		)

	def _commit(self, new_root: VirtualNode, action: str, path: str):
		self._root = new_root
		self._version += 1
		logger.debug(f"{action} {path} (version {self._version})")

		for listener in list(self._listeners):
			try:
				listener(self._version, new_root)
			except Exception:
				logger.exception(f"Filesystem listener failed after {action} {path}")

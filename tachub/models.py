import time
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import List, Optional, Tuple


class NodeKind(str, Enum):
	FILE = "file"
	DIRECTORY = "dir"


FILE_PERMISSIONS = "rw-r--r--"
DIR_PERMISSIONS = "rwxr-xr-x"
DEFAULT_OWNER = "user"


@dataclass(frozen=True)
class VirtualNode:
	"""
	One entry of the virtual filesystem.
	Nodes are immutable: a mutation builds new nodes along the changed path
	and shares every untouched subtree with the previous tree.
	`permissions` and `owner` are cosmetic and never enforced.
	"""
	name: str
	kind: NodeKind
	content: str = ""
	permissions: str = FILE_PERMISSIONS
	owner: str = DEFAULT_OWNER
	children: Tuple['VirtualNode', ...] = ()

	@property
	def is_dir(self) -> bool:
		return self.kind == NodeKind.DIRECTORY

	@property
	def is_file(self) -> bool:
		return self.kind == NodeKind.FILE

	@classmethod
	def file(cls, name: str, content: str = "", permissions: str = FILE_PERMISSIONS,
			owner: str = DEFAULT_OWNER) -> 'VirtualNode':
		return cls(name=name, kind=NodeKind.FILE, content=content, permissions=permissions, owner=owner)

	@classmethod
	def directory(cls, name: str, children: Tuple['VirtualNode', ...] = (),
				permissions: str = DIR_PERMISSIONS, owner: str = DEFAULT_OWNER) -> 'VirtualNode':
		return cls(name=name, kind=NodeKind.DIRECTORY, permissions=permissions, owner=owner,
				children=tuple(children))

	def child(self, name: str) -> Optional['VirtualNode']:
		for node in self.children:
			if node.name == name:
				return node
		return None

	def with_children(self, children) -> 'VirtualNode':
		return replace(self, children=tuple(children))

	def with_content(self, content: str) -> 'VirtualNode':
		return replace(self, content=content)

	def to_dict(self) -> dict:
		data = {
			"name": self.name,
			"type": self.kind.value,
			"content": self.content if self.is_file else "",
			"permissions": self.permissions,
			"owner": self.owner,
		}
		if self.is_dir:
			data["children"] = [node.to_dict() for node in self.children]
		return data

	@classmethod
	def from_dict(cls, data: dict) -> 'VirtualNode':
		if not isinstance(data, dict):
			raise ValueError(f"Node must be an object, got {type(data).__name__}")
		name = data.get("name")
		if not isinstance(name, str):
			raise ValueError("Node is missing a string 'name'")

		kind = NodeKind(data.get("type", NodeKind.FILE.value))
		if kind == NodeKind.FILE:
			return cls.file(
				name,
				content=str(data.get("content") or ""),
				permissions=data.get("permissions", FILE_PERMISSIONS),
				owner=data.get("owner", DEFAULT_OWNER),
			)

		# Sibling names are unique; a later duplicate replaces the earlier one in place.
		children: List[VirtualNode] = []
		seen = {}
		for raw in data.get("children") or []:
			node = cls.from_dict(raw)
			if node.name in ("", ".", "..") or "/" in node.name:
				raise ValueError(f"Unaddressable node name {node.name!r} in '{name}'")
			if node.name in seen:
				children[seen[node.name]] = node
			else:
				seen[node.name] = len(children)
				children.append(node)

		return cls.directory(
			name,
			children=tuple(children),
			permissions=data.get("permissions", DIR_PERMISSIONS),
			owner=data.get("owner", DEFAULT_OWNER),
		)


def seed_root() -> VirtualNode:
	"""The layout every fresh filesystem starts from."""
	return VirtualNode.directory("root", permissions="rwxr-xr-x", owner="system", children=(
		VirtualNode.directory("logs", permissions="rwxr--r--", owner="system"),
		VirtualNode.directory("notes", permissions="rwxr-xr-x", owner="user"),
		VirtualNode.file(
			"readme.txt",
			content="Welcome to the Tactical OS Virtual Filesystem.",
			permissions="r--r--r--",
			owner="system",
		),
	))


# --- Application records ---

def now_ms() -> int:
	return int(time.time() * 1000)


def new_record_id() -> str:
	return str(now_ms())


class _Record:
	"""Shared (de)serialization for the flat record dataclasses."""

	def to_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: dict):
		if not isinstance(data, dict):
			raise ValueError(f"{cls.__name__} must be an object")
		# Only use known fields
		known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
		return cls(**known)


@dataclass
class Note(_Record):
	id: str = field(default_factory=new_record_id)
	title: str = "New Note"
	content: str = ""
	timestamp: int = field(default_factory=now_ms)


@dataclass
class SavedImage(_Record):
	id: str = field(default_factory=new_record_id)
	url: str = ""
	prompt: str = ""
	timestamp: int = field(default_factory=now_ms)


@dataclass
class Snippet(_Record):
	id: str = field(default_factory=new_record_id)
	title: str = "Untitled"
	content: str = ""
	timestamp: int = field(default_factory=now_ms)


@dataclass
class Character(_Record):
	"""A chat persona card."""
	id: str = field(default_factory=new_record_id)
	name: str = ""
	description: str = ""
	personality: str = ""
	first_mes: str = "Hello, operator."
	mes_example: str = ""
	scenario: str = ""
	system_prompt: str = ""
	avatar_url: str = ""
	creator_notes: str = ""
	tags: List[str] = field(default_factory=list)
	token_count: int = 0

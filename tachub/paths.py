from typing import List

SEPARATOR = "/"
ROOT = "/"


def split_path(path: str) -> List[str]:
	"""Split a path into its non-empty segments. '.' segments are dropped."""
	return [part for part in path.split(SEPARATOR) if part and part != "."]


def join_path(parts: List[str]) -> str:
	return SEPARATOR + SEPARATOR.join(parts)


def resolve_path(path: str, cwd: str = ROOT) -> str:
	"""
	Turn `path` into a canonical absolute path.
	Relative paths are taken against `cwd`. '..' above the root stays at the root.
	Never raises; garbage in normalizes to the root or a best-effort path.
	"""
	path = path or ""
	if not path.startswith(SEPARATOR):
		path = f"{cwd or ROOT}{SEPARATOR}{path}"

	resolved: List[str] = []
	for part in split_path(path):
		if part == "..":
			if resolved:
				resolved.pop()
		else:
			resolved.append(part)
	return join_path(resolved)

"""Low-level node store for hashtree.

Provides path cleaning, the :class:`_TreeNode` record shared by finished
and open trees, path resolution helpers, and the git-object hashing used
to content-address files and directories.
"""

from __future__ import annotations

import os
from typing import Iterator

from dulwich.objects import Blob, Tree

from ._types import BlockRef, DirectoryNode, FileNode, Node, OpenNode
from .exceptions import PathNotFoundError

GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644


def _is_root_path(path: str | os.PathLike[str]) -> bool:
    """Return True if path represents the root (empty or only slashes)."""
    return os.fspath(path).strip("/") == ""


def _split_path(path: str | os.PathLike[str]) -> list[str]:
    """Clean *path* and return its segments (``[]`` for the root).

    Empty segments and ``.`` are dropped; ``..`` removes the previous
    segment and never climbs above the root.
    """
    path = os.fspath(path)
    segments: list[str] = []
    for seg in path.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if segments:
                segments.pop()
            continue
        segments.append(seg)
    return segments


def _clean_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: single leading ``/``, no trailing ``/`` except root."""
    return "/" + "/".join(_split_path(path))


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix != "/" else f"/{name}"


class _TreeNode:
    """One file or directory in the store.

    *blocks* is set for files, *children* for directories; never both.
    *owner* is the token of the builder allowed to modify this node in
    place.  Nodes reachable from a finished tree have an owner no live
    builder holds.
    """

    __slots__ = ("name", "hash", "size", "blocks", "children", "owner")

    def __init__(
        self,
        name: str,
        *,
        blocks: list[BlockRef] | None = None,
        children: dict[str, _TreeNode] | None = None,
        hash: str | None = None,
        size: int = 0,
        owner: object = None,
    ):
        if (blocks is None) == (children is None):
            raise ValueError("A node is exactly one of file or directory")
        self.name = name
        self.blocks = blocks
        self.children = children
        self.hash = hash
        self.size = size
        self.owner = owner

    @classmethod
    def new_file(cls, name: str, owner: object = None) -> _TreeNode:
        return cls(name, blocks=[], owner=owner)

    @classmethod
    def new_dir(cls, name: str, owner: object = None) -> _TreeNode:
        return cls(name, children={}, owner=owner)

    @property
    def is_dir(self) -> bool:
        return self.children is not None

    def clone(self, owner: object) -> _TreeNode:
        """Shallow copy owned by *owner*; children are shared, not copied."""
        return _TreeNode(
            self.name,
            blocks=list(self.blocks) if self.blocks is not None else None,
            children=dict(self.children) if self.children is not None else None,
            hash=self.hash,
            size=self.size,
            owner=owner,
        )

    def view(self) -> Node:
        if self.children is not None:
            return Node(self.name, self.hash, self.size, dir=DirectoryNode(tuple(sorted(self.children))))
        return Node(self.name, self.hash, self.size, file=FileNode(tuple(self.blocks)))

    def open_view(self) -> OpenNode:
        if self.children is not None:
            return OpenNode(self.name, dir=DirectoryNode(tuple(sorted(self.children))))
        return OpenNode(self.name, file=FileNode(tuple(self.blocks)))

    def __repr__(self) -> str:
        kind = "dir" if self.is_dir else "file"
        short = self.hash[:7] if self.hash else "stale"
        return f"_TreeNode({self.name!r}, {kind}, {short})"


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def file_hash(name: str, blocks: list[BlockRef]) -> str:
    """Git blob id over the file name and its ordered block references.

    Names and block hashes are length-prefixed, so no choice of either can
    make two different reference lists encode to the same bytes.
    """
    encoded = name.encode()
    parts = [b"%d:%s\x00" % (len(encoded), encoded)]
    for ref in blocks:
        h = ref.hash.encode()
        parts.append(b"%d:%s %d %d\n" % (len(h), h, ref.lower, ref.upper))
    return Blob.from_string(b"".join(parts)).id.decode()


def dir_hash(children: dict[str, _TreeNode]) -> str:
    """Git tree id over the sorted ``(name, hash)`` pairs of *children*."""
    tree = Tree()
    for name, child in children.items():
        mode = GIT_FILEMODE_TREE if child.is_dir else GIT_FILEMODE_BLOB
        tree.add(name.encode(), mode, child.hash.encode())
    return tree.id.decode()


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

def _entry_at_path(root: _TreeNode, segments: list[str]) -> _TreeNode | None:
    """Return the node at *segments*, or None if missing."""
    node = root
    for seg in segments:
        if node.children is None:
            return None
        node = node.children.get(seg)
        if node is None:
            return None
    return node


def _walk_to(root: _TreeNode, path: str) -> _TreeNode:
    """Walk the tree to the node at the given path."""
    node = _entry_at_path(root, _split_path(path))
    if node is None:
        raise PathNotFoundError(_clean_path(path))
    return node


def walk_tree(node: _TreeNode, prefix: str = "/") -> Iterator[tuple[str, _TreeNode]]:
    """Yield ``(path, node)`` for *node* and its descendants, pre-order by name."""
    stack = [(prefix, node)]
    while stack:
        path, node = stack.pop()
        yield path, node
        if node.children is not None:
            for name in sorted(node.children, reverse=True):
                stack.append((_join(path, name), node.children[name]))

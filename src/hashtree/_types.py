"""Public node views returned by :class:`~hashtree.HashTree` and
:class:`~hashtree.OpenHashTree`.

These are immutable snapshots; the trees themselves keep their nodes in
:class:`hashtree.tree._TreeNode` objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NodeType(str, Enum):
    """Kind of a node: ``FILE`` or ``DIR``."""
    FILE = "file"
    DIR = "dir"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True, slots=True)
class BlockRef:
    """Reference to the byte range ``[lower, upper)`` of block *hash*.

    The tree never reads block contents; it only stores, concatenates and
    compares references.
    """

    hash: str
    lower: int = 0
    upper: int = 0

    def __post_init__(self):
        if self.lower < 0 or self.upper < self.lower:
            raise ValueError(f"Invalid byte range [{self.lower}, {self.upper})")

    @property
    def size(self) -> int:
        """Number of bytes the reference covers."""
        return self.upper - self.lower


@dataclass(frozen=True, slots=True)
class FileNode:
    block_refs: tuple[BlockRef, ...] = ()


@dataclass(frozen=True, slots=True)
class DirectoryNode:
    children: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Node:
    """A finished node: authoritative *hash* and *size*.

    Exactly one of *file* or *dir* is set.  The root's *name* is ``""``.
    """

    name: str
    hash: str
    size: int
    file: FileNode | None = None
    dir: DirectoryNode | None = None

    @property
    def type(self) -> NodeType:
        return NodeType.FILE if self.file is not None else NodeType.DIR

    @property
    def is_dir(self) -> bool:
        return self.dir is not None


@dataclass(frozen=True, slots=True)
class OpenNode:
    """A node read from an unfinished tree.

    Same shape as :class:`Node` minus *hash* and *size*, which are stale
    until :meth:`~hashtree.OpenHashTree.finish` runs.
    """

    name: str
    file: FileNode | None = None
    dir: DirectoryNode | None = None

    @property
    def type(self) -> NodeType:
        return NodeType.FILE if self.file is not None else NodeType.DIR

    @property
    def is_dir(self) -> bool:
        return self.dir is not None

"""HashTree and OpenHashTree: the finished and mutable views of a tree.

An :class:`OpenHashTree` accumulates writes, deletes and merges without
hashing anything; :meth:`OpenHashTree.finish` re-hashes only the nodes
those operations touched and returns an immutable :class:`HashTree`.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator

from ._glob import LITERAL, RECURSIVE, GlobToken, _glob_match, tokenize
from ._types import BlockRef, Node, OpenNode
from .exceptions import InternalError, PathConflictError, PathNotFoundError
from .tree import (
    _TreeNode,
    _clean_path,
    _entry_at_path,
    _join,
    _split_path,
    _walk_to,
    dir_hash,
    file_hash,
    walk_tree,
)

__all__ = ["HashTree", "OpenHashTree", "new_hash_tree", "unmarshal"]

logger = logging.getLogger(__name__)


class HashTree:
    """An immutable, fully hashed snapshot.

    Safe for concurrent reads.  Use :meth:`open` to derive a builder;
    nothing done to the builder is visible through this object.
    """

    def __init__(self, root: _TreeNode):
        self._root = root

    def __repr__(self) -> str:
        return f"HashTree(hash={self.hash[:7]}, size={self.size})"

    def __eq__(self, other):
        if isinstance(other, HashTree):
            return self._root.hash == other._root.hash
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._root.hash)

    @property
    def hash(self) -> str:
        """The 40-char hex hash of the root directory."""
        return self._root.hash

    @property
    def size(self) -> int:
        """Total size in bytes of every block reference in the tree."""
        return self._root.size

    def open(self) -> OpenHashTree:
        """Return a builder sharing this tree's nodes copy-on-write."""
        return OpenHashTree(self._root)

    def marshal(self) -> bytes:
        """Serialize this tree; see :func:`unmarshal`."""
        from .serialize import encode_tree
        return encode_tree(self._root)

    # --- Read operations ---

    def get(self, path: str | os.PathLike[str]) -> Node:
        """Return the node at *path*.

        Raises:
            PathNotFoundError: If *path* does not exist.
        """
        return _walk_to(self._root, path).view()

    def exists(self, path: str | os.PathLike[str]) -> bool:
        """Return ``True`` if *path* exists (file or directory)."""
        return _entry_at_path(self._root, _split_path(path)) is not None

    def list(self, path: str | os.PathLike[str] = "/") -> list[Node]:
        """Return the children of the directory at *path*, sorted by name.

        Raises:
            PathNotFoundError: If *path* does not exist.
            PathConflictError: If *path* is a file.
        """
        node = _walk_to(self._root, path)
        if node.children is None:
            clean = _clean_path(path)
            raise PathConflictError(clean, f"{clean} is a file, not a directory")
        return [node.children[name].view() for name in sorted(node.children)]

    def walk(self, path: str | os.PathLike[str] = "/") -> Iterator[tuple[str, Node]]:
        """Yield ``(path, node)`` for *path* and everything below it, pre-order."""
        node = _walk_to(self._root, path)
        for p, n in walk_tree(node, _clean_path(path)):
            yield p, n.view()

    # --- Glob ---

    def iglob(self, pattern: str) -> Iterator[str]:
        """Expand a glob pattern, yielding unique matches in no particular order.

        Raises:
            MalformedGlobError: If *pattern* cannot be tokenized.
        """
        tokens = tokenize(pattern)
        return (path for path, _node in self._iglob_unique(tokens))

    def glob(self, pattern: str) -> list[str]:
        """Expand a glob pattern against the tree.

        ``*`` matches within one path segment and ``**`` matches zero or
        more whole segments.  Returns a sorted, deduplicated list of
        matching paths (files and directories).  The root never matches.

        A trailing ``**`` matches only what lies below its prefix:
        ``"/a/**"`` yields everything under ``/a`` but not ``/a`` itself.
        """
        return sorted(self.iglob(pattern))

    def glob_nodes(self, pattern: str) -> list[tuple[str, Node]]:
        """Like :meth:`glob` but returns ``(path, node)`` pairs."""
        tokens = tokenize(pattern)
        found = sorted(self._iglob_unique(tokens), key=lambda item: item[0])
        return [(path, node.view()) for path, node in found]

    def _iglob_unique(self, tokens: tuple[GlobToken, ...]) -> Iterator[tuple[str, _TreeNode]]:
        seen: set[str] = set()
        for path, node in self._iglob_walk(tokens, "/", self._root):
            if path not in seen:
                seen.add(path)
                yield path, node

    def _iglob_walk(
        self, tokens: tuple[GlobToken, ...], prefix: str, node: _TreeNode
    ) -> Iterator[tuple[str, _TreeNode]]:
        """Glob generator over the children of *node*; may yield duplicates."""
        # (remaining tokens, path, directory) still to expand
        stack = [(tokens, prefix, node)]
        while stack:
            tokens, prefix, node = stack.pop()
            if not tokens or node.children is None:
                continue
            tok = tokens[0]
            rest = tokens[1:]

            if tok.kind == RECURSIVE:
                if rest:
                    # Zero segments: match the rest right here
                    stack.append((rest, prefix, node))
                else:
                    for name, child in node.children.items():
                        yield _join(prefix, name), child
                # One or more segments: descend, keeping ** active
                for name, child in node.children.items():
                    if child.children is not None:
                        stack.append((tokens, _join(prefix, name), child))
                continue

            if tok.kind == LITERAL:
                child = node.children.get(tok.value)
                matches = [(tok.value, child)] if child is not None else []
            else:
                matches = [(name, child) for name, child in node.children.items()
                           if _glob_match(tok, name)]
            for name, child in matches:
                full = _join(prefix, name)
                if rest:
                    stack.append((rest, full, child))
                else:
                    yield full, child


class OpenHashTree:
    """A mutable, single-writer tree whose hashes are stale until :meth:`finish`.

    Every mutation copies the nodes along the affected path (never the
    rest of the tree) and records that path in a dirty work-list.
    Concurrent calls on one builder are not supported.
    """

    def __init__(self, root: _TreeNode | None = None):
        # Nodes whose owner is this token may be modified in place
        self._token = object()
        self._dirty: set[str] = set()
        if root is None:
            self._root = _TreeNode.new_dir("", self._token)
            self._dirty.add("/")
        else:
            self._root = root

    def __repr__(self) -> str:
        return f"OpenHashTree(dirty={len(self._dirty)})"

    @property
    def finished(self) -> bool:
        """``True`` when no mutation is pending a re-hash."""
        return not self._dirty

    # --- Copy-on-write helpers ---

    def _own(self, node: _TreeNode) -> _TreeNode:
        if node.owner is self._token:
            return node
        return node.clone(self._token)

    def _owned_chain(self, segments: list[str]) -> _TreeNode:
        """Take ownership of every existing node from the root down to *segments*.

        Marks each of them dirty and returns the last one.
        """
        node = self._root = self._own(self._root)
        self._dirty.add("/")
        path = "/"
        for seg in segments:
            child = node.children[seg] = self._own(node.children[seg])
            path = _join(path, seg)
            self._dirty.add(path)
            node = child
        return node

    def _ensure(self, segments: list[str], leaf_is_file: bool) -> _TreeNode:
        """Like :meth:`_owned_chain` but creates missing nodes on the way."""
        node = self._root = self._own(self._root)
        self._dirty.add("/")
        path = "/"
        last = len(segments) - 1
        for i, seg in enumerate(segments):
            child = node.children.get(seg)
            if child is None:
                if leaf_is_file and i == last:
                    child = _TreeNode.new_file(seg, self._token)
                else:
                    child = _TreeNode.new_dir(seg, self._token)
            else:
                child = self._own(child)
            node.children[seg] = child
            path = _join(path, seg)
            self._dirty.add(path)
            node = child
        return node

    def _check_parents(self, segments: list[str]) -> _TreeNode | None:
        """Return the node at *segments*, or None if it (or a parent) is missing.

        Raises :exc:`PathConflictError` if an existing parent is a file.
        """
        node = self._root
        for i, seg in enumerate(segments):
            if node.children is None:
                partial = "/" + "/".join(segments[:i])
                raise PathConflictError(partial, f"{partial} is a file, not a directory")
            node = node.children.get(seg)
            if node is None:
                return None
        return node

    # --- Read operations ---

    def get_open(self, path: str | os.PathLike[str]) -> OpenNode:
        """Return the current node at *path*; hash and size are not included.

        Raises:
            PathNotFoundError: If *path* does not exist.
        """
        return _walk_to(self._root, path).open_view()

    # --- Write operations ---

    def put_file(self, path: str | os.PathLike[str], block_refs: Iterable[BlockRef]) -> None:
        """Append *block_refs* to the file at *path*, creating it and its parents.

        Raises:
            PathConflictError: If *path* is a directory or one of its
                parents is a file.
        """
        segments = _split_path(path)
        if not segments:
            raise PathConflictError("/", "/ is a directory, not a file")
        refs = list(block_refs)
        for ref in refs:
            if not isinstance(ref, BlockRef):
                raise TypeError(f"Expected BlockRef, got {type(ref).__name__}")
        existing = self._check_parents(segments)
        if existing is not None and existing.children is not None:
            clean = _clean_path(path)
            raise PathConflictError(clean, f"{clean} is a directory, not a file")
        self._ensure(segments, leaf_is_file=True).blocks.extend(refs)

    def put_dir(self, path: str | os.PathLike[str]) -> None:
        """Create the directory at *path* and any missing parents.

        Does nothing if the directory already exists.

        Raises:
            PathConflictError: If *path* or one of its parents is a file.
        """
        segments = _split_path(path)
        existing = self._check_parents(segments)
        if existing is not None:
            if existing.children is None:
                clean = _clean_path(path)
                raise PathConflictError(clean, f"{clean} is a file, not a directory")
            return
        self._ensure(segments, leaf_is_file=False)

    def delete_file(self, path: str | os.PathLike[str]) -> None:
        """Delete the file or directory (with its contents) at *path*.

        Deleting ``/`` empties the tree.

        Raises:
            PathNotFoundError: If *path* does not exist.
        """
        segments = _split_path(path)
        if not segments:
            self._root = _TreeNode.new_dir("", self._token)
            self._dirty = {"/"}
            return
        clean = _clean_path(path)
        if _entry_at_path(self._root, segments) is None:
            raise PathNotFoundError(clean)
        parent = self._owned_chain(segments[:-1])
        del parent.children[segments[-1]]
        below = clean + "/"
        self._dirty = {p for p in self._dirty if p != clean and not p.startswith(below)}

    def merge(self, trees: Iterable[OpenHashTree | HashTree]) -> None:
        """Merge the contents of each tree in *trees*, in order, into this one.

        Files present on both sides get the source's block references
        appended; directories are unioned.  Either every source merges or
        nothing changes.

        Raises:
            PathConflictError: If a path is a file on one side and a
                directory on the other.
        """
        scratch = OpenHashTree(self._root)
        scratch._dirty = set(self._dirty)
        for tree in trees:
            scratch._merge_node([], tree._root)
        self._root = scratch._root
        self._dirty = scratch._dirty
        self._token = scratch._token

    def _merge_node(self, segments: list[str], src: _TreeNode) -> None:
        # Depth-first over the source, children in name order
        stack = [(segments, src)]
        while stack:
            segments, src = stack.pop()
            dst = _entry_at_path(self._root, segments)
            path = "/" + "/".join(segments)
            if src.children is not None:
                if dst is None:
                    self._ensure(segments, leaf_is_file=False)
                elif dst.children is None:
                    raise PathConflictError(path, f"cannot merge directory into file {path}")
                for name in sorted(src.children, reverse=True):
                    stack.append((segments + [name], src.children[name]))
                continue
            if dst is not None and dst.children is not None:
                raise PathConflictError(path, f"cannot merge file into directory {path}")
            self._ensure(segments, leaf_is_file=True).blocks.extend(src.blocks)

    # --- Finish ---

    def finish(self) -> HashTree:
        """Re-hash every dirty node, children before parents.

        Nodes outside the dirty work-list keep their existing hash and
        size.  Later mutations of this builder never affect the returned
        tree.

        Raises:
            InternalError: If the tree structure is inconsistent.
        """
        files: list[_TreeNode] = []
        dirs: list[tuple[int, str, _TreeNode]] = []
        for path in self._dirty:
            segments = _split_path(path)
            node = _entry_at_path(self._root, segments)
            if node is None:
                logger.error("dirty path %s has no node", path)
                raise InternalError(f"dirty path {path} has no node")
            if node.children is None:
                files.append(node)
            else:
                dirs.append((len(segments), path, node))

        for node in files:
            node.hash = file_hash(node.name, node.blocks)
            node.size = sum(ref.size for ref in node.blocks)

        dirs.sort(key=lambda item: item[0], reverse=True)
        for _depth, path, node in dirs:
            for name, child in node.children.items():
                if child.hash is None:
                    logger.error("child %r of %s was never hashed", name, path)
                    raise InternalError(f"child {name!r} of {path} was never hashed")
            node.hash = dir_hash(node.children)
            node.size = sum(child.size for child in node.children.values())

        logger.debug("finish: rehashed %d files, %d directories", len(files), len(dirs))
        self._dirty = set()
        # The returned tree's nodes must never be modified in place again
        self._token = object()
        return HashTree(self._root)


def new_hash_tree() -> OpenHashTree:
    """Return an empty builder."""
    return OpenHashTree()


def unmarshal(data: bytes) -> HashTree:
    """Rebuild a :class:`HashTree` from :meth:`HashTree.marshal` output.

    Raises:
        UnsupportedError: If the version tag is not recognized.
        CannotDeserializeError: If *data* is corrupt.
    """
    from .serialize import decode_tree
    return HashTree(decode_tree(data))

"""Versioned binary envelope for finished trees.

Layout::

    b"HTRE" | version (1 byte) | zlib(JSON list of nodes)

Nodes are listed in pre-order, children sorted by name.  Each JSON node
is ``{"name", "hash", "size"}`` plus either ``"file"`` (a list of
``[hash, lower, upper]`` block references) or ``"dir"`` (the number of
children that follow it).  Keeping the payload flat means neither side
recurses once per tree level.
"""

from __future__ import annotations

import json
import re
import struct
import zlib

from ._types import BlockRef
from .exceptions import CannotDeserializeError, UnsupportedError
from .tree import _TreeNode

MAGIC = b"HTRE"
VERSION = 1
SUPPORTED_VERSIONS = frozenset({1})

_HEADER = struct.Struct(">4sB")
_HASH_RE = re.compile(r"[0-9a-f]{40}")


def _node_to_dict(node: _TreeNode) -> dict:
    d: dict = {"name": node.name, "hash": node.hash, "size": node.size}
    if node.children is not None:
        d["dir"] = len(node.children)
    else:
        d["file"] = [[ref.hash, ref.lower, ref.upper] for ref in node.blocks]
    return d


def encode_tree(root: _TreeNode) -> bytes:
    """Serialize a finished tree rooted at *root*."""
    if root.hash is None:
        raise ValueError("Cannot marshal an unfinished tree")
    records = []
    stack = [root]
    while stack:
        node = stack.pop()
        records.append(_node_to_dict(node))
        if node.children is not None:
            stack.extend(node.children[name] for name in sorted(node.children, reverse=True))
    payload = json.dumps(records, separators=(",", ":")).encode()
    return _HEADER.pack(MAGIC, VERSION) + zlib.compress(payload)


def _node_from_dict(d, is_root: bool = False) -> tuple[_TreeNode, int]:
    """Build one node from its record; return it with its child count."""
    if not isinstance(d, dict):
        raise CannotDeserializeError(f"expected an object, got {type(d).__name__}")
    name = d.get("name")
    node_hash = d.get("hash")
    size = d.get("size")
    if not isinstance(name, str) or "/" in name or (not name) != is_root:
        raise CannotDeserializeError(f"invalid node name {name!r}")
    if not isinstance(node_hash, str) or not _HASH_RE.fullmatch(node_hash):
        raise CannotDeserializeError(f"invalid hash for {name!r}")
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise CannotDeserializeError(f"invalid size for {name!r}")
    if ("dir" in d) == ("file" in d):
        raise CannotDeserializeError(f"{name!r} must be exactly one of file or dir")

    if "dir" in d:
        count = d["dir"]
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise CannotDeserializeError(f"invalid child count for {name!r}")
        return _TreeNode(name, children={}, hash=node_hash, size=size), count

    if not isinstance(d["file"], list):
        raise CannotDeserializeError(f"invalid block references for {name!r}")
    blocks: list[BlockRef] = []
    for item in d["file"]:
        try:
            block_hash, lower, upper = item
            if not isinstance(block_hash, str) or not isinstance(lower, int) or not isinstance(upper, int):
                raise TypeError("block reference fields have the wrong type")
            blocks.append(BlockRef(block_hash, lower, upper))
        except (TypeError, ValueError) as exc:
            raise CannotDeserializeError(f"invalid block reference in {name!r}", cause=exc)
    return _TreeNode(name, blocks=blocks, hash=node_hash, size=size), 0


def _build_tree(records) -> _TreeNode:
    if not isinstance(records, list) or not records:
        raise CannotDeserializeError("payload must be a non-empty list of nodes")
    root, count = _node_from_dict(records[0], is_root=True)
    if root.children is None:
        raise CannotDeserializeError("root must be a directory")
    # Directories still waiting for children, with how many are left
    pending: list[list] = [[root, count]] if count else []
    for i, record in enumerate(records[1:], 1):
        if not pending:
            raise CannotDeserializeError(f"unexpected node at position {i}")
        parent = pending[-1]
        node, count = _node_from_dict(record)
        if node.name in parent[0].children:
            raise CannotDeserializeError(f"duplicate child {node.name!r} in {parent[0].name!r}")
        parent[0].children[node.name] = node
        parent[1] -= 1
        while pending and pending[-1][1] == 0:
            pending.pop()
        if count:
            pending.append([node, count])
    if pending:
        raise CannotDeserializeError("payload ends before every directory is complete")
    return root


def decode_tree(data: bytes) -> _TreeNode:
    """Decode :func:`encode_tree` output into a root node.

    Raises:
        UnsupportedError: If the version tag is not recognized.
        CannotDeserializeError: If *data* is truncated or corrupt.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise CannotDeserializeError(f"expected bytes, got {type(data).__name__}")
    data = bytes(data)
    if len(data) < _HEADER.size:
        raise CannotDeserializeError("truncated header")
    magic, version = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise CannotDeserializeError(f"bad magic {magic!r}")
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedError(f"unsupported serialization version {version}")
    try:
        payload = json.loads(zlib.decompress(data[_HEADER.size:]))
    except (zlib.error, ValueError, RecursionError) as exc:
        raise CannotDeserializeError("corrupt payload", cause=exc)
    return _build_tree(payload)

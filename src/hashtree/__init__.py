from ._types import BlockRef, DirectoryNode, FileNode, Node, NodeType, OpenNode
from .exceptions import (
    CannotDeserializeError,
    ErrorCode,
    HashTreeError,
    InternalError,
    MalformedGlobError,
    PathConflictError,
    PathNotFoundError,
    UnsupportedError,
    error_code,
)
from .hashtree import HashTree, OpenHashTree, new_hash_tree, unmarshal

__all__ = [
    "HashTree", "OpenHashTree", "new_hash_tree", "unmarshal",
    "BlockRef", "FileNode", "DirectoryNode", "Node", "NodeType", "OpenNode",
    "ErrorCode", "error_code", "HashTreeError", "InternalError",
    "CannotDeserializeError", "UnsupportedError", "PathNotFoundError",
    "MalformedGlobError", "PathConflictError",
]

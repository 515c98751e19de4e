"""Tests for HashTree.marshal() / unmarshal()."""

import json
import sys
import zlib

import pytest

from hashtree import (
    BlockRef,
    CannotDeserializeError,
    ErrorCode,
    UnsupportedError,
    error_code,
    new_hash_tree,
    unmarshal,
)
from hashtree.serialize import MAGIC, VERSION


def _envelope(payload, version=VERSION) -> bytes:
    return MAGIC + bytes([version]) + zlib.compress(json.dumps(payload).encode())


H = "0" * 40


def _dir(name, count, hash=H):
    return {"name": name, "hash": hash, "size": 0, "dir": count}


def _file(name, refs=()):
    return {"name": name, "hash": H, "size": 0, "file": list(refs)}


class TestRoundTrip:
    def test_same_reads(self, sample_tree):
        t = unmarshal(sample_tree.marshal())
        assert t.hash == sample_tree.hash
        assert t.size == sample_tree.size
        for path in ["/", "/src", "/src/sub/deep.txt", "/empty", "/docs/api.md"]:
            assert t.get(path) == sample_tree.get(path)
        for path in ["/", "/src", "/docs", "/empty"]:
            assert t.list(path) == sample_tree.list(path)
        for pattern in ["**", "/src/*", "/**/*.md", "*.txt"]:
            assert t.glob(pattern) == sample_tree.glob(pattern)

    def test_empty_tree(self):
        empty = new_hash_tree().finish()
        t = unmarshal(empty.marshal())
        assert t.hash == empty.hash
        assert t.list("/") == []

    def test_deterministic(self, sample_tree):
        again = unmarshal(sample_tree.marshal())
        assert again.marshal() == sample_tree.marshal()

    def test_header(self, sample_tree):
        data = sample_tree.marshal()
        assert data[:4] == MAGIC
        assert data[4] == VERSION

    def test_unmarshaled_tree_can_be_opened(self, sample_tree):
        t = unmarshal(sample_tree.marshal())
        b = t.open()
        b.put_file("/src/main.py", [BlockRef("extra", 0, 2)])
        t2 = b.finish()
        assert t2.get("/src/main.py").size == 6
        assert t2.get("/docs").hash == sample_tree.get("/docs").hash
        assert t.get("/src/main.py").size == 4

    def test_incremental_after_unmarshal_matches_direct(self, sample_tree):
        b1 = unmarshal(sample_tree.marshal()).open()
        b1.put_file("/new/file", [BlockRef("n", 0, 1)])
        b2 = sample_tree.open()
        b2.put_file("/new/file", [BlockRef("n", 0, 1)])
        assert b1.finish().hash == b2.finish().hash

    def test_accepts_bytearray(self, sample_tree):
        assert unmarshal(bytearray(sample_tree.marshal())).hash == sample_tree.hash

    def test_payload_is_flat_preorder(self, sample_tree):
        records = json.loads(zlib.decompress(sample_tree.marshal()[5:]))
        assert [r["name"] for r in records[:3]] == ["", "docs", "api.md"]
        assert records[0]["dir"] == len(sample_tree.list("/"))

    def test_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 200
        path = "/" + "/".join(["d"] * depth)
        b = new_hash_tree()
        b.put_file(path, [BlockRef("x", 0, 1)])
        tree = b.finish()
        t = unmarshal(tree.marshal())
        assert t.hash == tree.hash
        assert t.get(path).file.block_refs == (BlockRef("x", 0, 1),)


class TestUnsupported:
    @pytest.mark.parametrize("version", [0, 2, 255])
    def test_unknown_version(self, sample_tree, version):
        data = bytearray(sample_tree.marshal())
        data[4] = version
        with pytest.raises(UnsupportedError) as exc_info:
            unmarshal(bytes(data))
        assert error_code(exc_info.value) == ErrorCode.UNSUPPORTED


class TestCannotDeserialize:
    def _assert_corrupt(self, data):
        with pytest.raises(CannotDeserializeError) as exc_info:
            unmarshal(data)
        assert error_code(exc_info.value) == ErrorCode.CANNOT_DESERIALIZE
        return exc_info.value

    def test_truncated_header(self):
        self._assert_corrupt(b"HT")

    def test_empty(self):
        self._assert_corrupt(b"")

    def test_bad_magic(self, sample_tree):
        self._assert_corrupt(b"NOPE" + sample_tree.marshal()[4:])

    def test_garbage_payload(self):
        err = self._assert_corrupt(MAGIC + bytes([VERSION]) + b"garbage")
        assert isinstance(err.__cause__, zlib.error)

    def test_truncated_payload(self, sample_tree):
        self._assert_corrupt(sample_tree.marshal()[:-8])

    def test_not_json(self):
        self._assert_corrupt(MAGIC + bytes([VERSION]) + zlib.compress(b"{not json"))

    def test_not_bytes(self):
        self._assert_corrupt("a string")

    @pytest.mark.parametrize("payload", [
        [],
        {"name": "", "hash": H, "size": 0, "dir": 0},
        [{"name": "", "hash": H, "size": 0}],
        [{"name": "", "hash": H, "size": 0, "file": []}],
        [{"name": "x", "hash": H, "size": 0, "dir": 0}],
        [{"name": "", "hash": "bad", "size": 0, "dir": 0}],
        [{"name": "", "hash": H, "size": -1, "dir": 0}],
        [{"name": "", "hash": H, "size": 0, "dir": []}],
        [{"name": "", "hash": H, "size": 0, "dir": -1}],
        [{"name": "", "hash": H, "size": 0, "dir": 0, "file": []}],
        [_dir("", 1), _file("")],
        [_dir("", 1), _file("a/b")],
        [_dir("", 2), _file("a"), _dir("a", 0)],
        [_dir("", 1), _file("a", [["h", 5, 1]])],
        [_dir("", 1), _file("a", [["h", 0]])],
        [_dir("", 1), _file("a", [[1, 0, 1]])],
        [_dir("", 2), _file("a")],
        [_dir("", 1), _dir("a", 1)],
        [_dir("", 0), _file("a")],
        [_dir("", 1), _file("a"), _file("b")],
    ])
    def test_bad_structure(self, payload):
        self._assert_corrupt(_envelope(payload))

    def test_deeply_nested_json(self):
        data = MAGIC + bytes([VERSION]) + zlib.compress(b"[" * 100000 + b"]" * 100000)
        err = self._assert_corrupt(data)
        assert isinstance(err.__cause__, RecursionError)

    def test_minimal_valid_envelope(self):
        payload = [_dir("", 0, hash="4b825dc642cb6eb9a060e54bf8d69288fbee4904")]
        t = unmarshal(_envelope(payload))
        assert t.hash == new_hash_tree().finish().hash


class TestMarshalUnfinished:
    def test_unhashed_root_rejected(self):
        from hashtree.serialize import encode_tree
        from hashtree.tree import _TreeNode
        with pytest.raises(ValueError):
            encode_tree(_TreeNode.new_dir(""))

"""Shared fixtures for hashtree tests."""

import pytest
from click.testing import CliRunner

from hashtree import BlockRef, new_hash_tree
from hashtree.cli import main


@pytest.fixture
def sample_tree():
    """Finished tree for read/glob tests.

    Tree:
        readme.txt, setup.py,
        src/main.py, src/util.py, src/sub/deep.txt,
        docs/guide.md, docs/api.md,
        empty/
    """
    b = new_hash_tree()
    b.put_file("/readme.txt", [BlockRef("r", 0, 6)])
    b.put_file("/setup.py", [BlockRef("s", 0, 5)])
    b.put_file("/src/main.py", [BlockRef("m", 0, 4)])
    b.put_file("/src/util.py", [BlockRef("u", 0, 4)])
    b.put_file("/src/sub/deep.txt", [BlockRef("d", 0, 4)])
    b.put_file("/docs/guide.md", [BlockRef("g", 0, 5)])
    b.put_file("/docs/api.md", [BlockRef("a", 0, 3)])
    b.put_dir("/empty")
    return b.finish()


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tree_path(tmp_path):
    """Return a path to a not-yet-created tree file."""
    return str(tmp_path / "data.tree")


@pytest.fixture
def initialized_tree(tree_path, runner):
    """Create an empty tree file and return its path."""
    result = runner.invoke(main, ["init", "--tree", tree_path])
    assert result.exit_code == 0, result.output
    return tree_path


@pytest.fixture
def tree_with_files(initialized_tree, runner):
    """Tree file with /hello.txt and /data/data.bin."""
    p = initialized_tree
    r = runner.invoke(main, ["put", "--tree", p, "/hello.txt", "h1:0-12"])
    assert r.exit_code == 0, r.output
    r = runner.invoke(main, ["put", "--tree", p, "/data/data.bin", "d1:0-3", "d2:10-20"])
    assert r.exit_code == 0, r.output
    return p

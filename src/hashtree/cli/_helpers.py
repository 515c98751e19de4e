"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager

import click

from .._types import BlockRef
from ..exceptions import ErrorCode, HashTreeError
from ..hashtree import HashTree, OpenHashTree, unmarshal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_tree(ctx, param, value):
    """Click callback: store --tree value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["tree_path"] = value
    return value


def _tree_option(f):
    """Shared --tree/-t option decorator for all commands."""
    return click.option(
        "--tree", "-t", type=click.Path(dir_okay=False), envvar="HASHTREE_FILE",
        help="Path to a marshaled tree file (or set HASHTREE_FILE).",
        expose_value=False, callback=_store_tree, is_eager=True,
    )(f)


def _format_option(f):
    """Shared --format option for text or JSON output."""
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json"]), default="text",
        show_default=True, help="Output format.",
    )(f)


def _require_tree(ctx) -> str:
    """Get the tree path from context, raising a clear error if missing."""
    path = ctx.obj.get("tree_path")
    if not path:
        raise click.ClickException(
            "No tree file specified. Use --tree or set HASHTREE_FILE."
        )
    return path


_ERROR_LABELS = {
    ErrorCode.PATH_NOT_FOUND: "Not found",
    ErrorCode.PATH_CONFLICT: "Conflict",
    ErrorCode.MALFORMED_GLOB: "Bad pattern",
    ErrorCode.CANNOT_DESERIALIZE: "Corrupt tree file",
    ErrorCode.UNSUPPORTED: "Unsupported tree file",
    ErrorCode.INTERNAL: "Internal error",
}


@contextmanager
def _tree_errors():
    """Turn classified hashtree errors into :class:`click.ClickException`."""
    try:
        yield
    except HashTreeError as exc:
        label = _ERROR_LABELS.get(exc.code, "Error")
        raise click.ClickException(f"{label}: {exc}")


def _load_tree(path: str) -> HashTree:
    if not os.path.exists(path):
        raise click.ClickException(f"Tree file not found: {path}")
    with open(path, "rb") as f:
        data = f.read()
    with _tree_errors():
        return unmarshal(data)


def _save_tree(path: str, tree: HashTree) -> None:
    """Write *tree* to *path* through a temp file so readers never see a partial file."""
    tmp = f"{path}.tmp"
    with open(tmp, "wb") as f:
        f.write(tree.marshal())
    os.replace(tmp, path)


@contextmanager
def _edit_tree(ctx):
    """Open the tree file for writing; finish and save on clean exit."""
    path = _require_tree(ctx)
    builder: OpenHashTree = _load_tree(path).open()
    with _tree_errors():
        yield builder
        tree = builder.finish()
    _save_tree(path, tree)
    _status(ctx, f"{path}: {tree.hash}")


def _parse_block_ref(raw: str) -> BlockRef:
    """Parse ``HASH`` or ``HASH:LOWER-UPPER`` into a :class:`BlockRef`."""
    block_hash, sep, span = raw.partition(":")
    if not block_hash:
        raise click.BadParameter(f"missing block hash in {raw!r}")
    if not sep:
        return BlockRef(block_hash)
    lower, dash, upper = span.partition("-")
    try:
        if not dash:
            raise ValueError("expected LOWER-UPPER")
        return BlockRef(block_hash, int(lower), int(upper))
    except ValueError as exc:
        raise click.BadParameter(f"invalid block reference {raw!r}: {exc}")


def _node_dict(path: str, node) -> dict:
    d = {"path": path, "name": node.name, "type": str(node.type),
         "hash": node.hash, "size": node.size}
    if node.file is not None:
        d["block_refs"] = [
            {"hash": r.hash, "lower": r.lower, "upper": r.upper}
            for r in node.file.block_refs
        ]
    else:
        d["children"] = list(node.dir.children)
    return d


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--tree", "-t", type=click.Path(dir_okay=False), envvar="HASHTREE_FILE",
              help="Path to a marshaled tree file (or set HASHTREE_FILE).",
              expose_value=False, callback=_store_tree, is_eager=True)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, verbose):
    """hashtree — content-addressed file trees.

    Build, inspect, and merge trees of block references stored in a
    single marshaled file.

    \b
    Quick start:
      hashtree init -t data.tree
      hashtree put /logs/a.log 3f2c...:0-1024
      hashtree ls /logs
      hashtree glob '/**/*.log'

    \b
    Set HASHTREE_FILE to avoid passing --tree on every call.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
        logging.getLogger("hashtree").setLevel(logging.DEBUG)

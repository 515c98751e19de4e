"""Read commands: init, ls, stat, glob, hash."""

from __future__ import annotations

import json
import os

import click

from ..hashtree import new_hash_tree
from ..tree import _clean_path, _join
from ._helpers import (
    main,
    _format_option,
    _load_tree,
    _node_dict,
    _require_tree,
    _save_tree,
    _status,
    _tree_errors,
    _tree_option,
)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@main.command()
@_tree_option
@click.option("-f", "--force", is_flag=True, help="Overwrite an existing tree file.")
@click.pass_context
def init(ctx, force):
    """Create a tree file holding an empty tree."""
    path = _require_tree(ctx)
    if os.path.exists(path) and not force:
        raise click.ClickException(f"Tree file already exists: {path}")
    tree = new_hash_tree().finish()
    _save_tree(path, tree)
    _status(ctx, f"Initialized {path}")


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@_tree_option
@click.argument("path", required=False, default="/")
@click.option("-l", "--long", "long_", is_flag=True, help="Show hash, size and type.")
@_format_option
@click.pass_context
def ls(ctx, path, long_, fmt):
    """List the directory at PATH (default: root)."""
    tree = _load_tree(_require_tree(ctx))
    with _tree_errors():
        children = tree.list(path)
    prefix = _clean_path(path)

    if fmt == "json":
        if long_:
            click.echo(json.dumps([_node_dict(_join(prefix, n.name), n) for n in children]))
        else:
            click.echo(json.dumps([n.name for n in children]))
        return

    for node in children:
        name = node.name + "/" if node.is_dir else node.name
        if long_:
            click.echo(f"{node.hash[:7]}  {node.size:>10}  {name}")
        else:
            click.echo(name)


# ---------------------------------------------------------------------------
# stat
# ---------------------------------------------------------------------------

@main.command()
@_tree_option
@click.argument("path")
@_format_option
@click.pass_context
def stat(ctx, path, fmt):
    """Show the hash, size and contents of the node at PATH."""
    tree = _load_tree(_require_tree(ctx))
    with _tree_errors():
        node = tree.get(path)
    d = _node_dict(_clean_path(path), node)
    if fmt == "json":
        click.echo(json.dumps(d))
        return
    click.echo(f"path:  {d['path']}")
    click.echo(f"type:  {d['type']}")
    click.echo(f"hash:  {d['hash']}")
    click.echo(f"size:  {d['size']}")
    if node.file is not None:
        for ref in node.file.block_refs:
            click.echo(f"block: {ref.hash}:{ref.lower}-{ref.upper}")
    else:
        click.echo(f"children: {len(d['children'])}")


# ---------------------------------------------------------------------------
# glob
# ---------------------------------------------------------------------------

@main.command()
@_tree_option
@click.argument("pattern")
@_format_option
@click.pass_context
def glob(ctx, pattern, fmt):
    """Print every path matching PATTERN ('*' within a segment, '**' across)."""
    tree = _load_tree(_require_tree(ctx))
    with _tree_errors():
        matches = tree.glob(pattern)
    if fmt == "json":
        click.echo(json.dumps(matches))
        return
    for match in matches:
        click.echo(match)


# ---------------------------------------------------------------------------
# hash
# ---------------------------------------------------------------------------

@main.command("hash")
@_tree_option
@click.argument("path", required=False, default="/")
@click.pass_context
def hash_cmd(ctx, path):
    """Print the hash of the node at PATH (default: root)."""
    tree = _load_tree(_require_tree(ctx))
    with _tree_errors():
        node = tree.get(path)
    click.echo(node.hash)

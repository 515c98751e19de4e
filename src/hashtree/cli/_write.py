"""Write commands: put, mkdir, rm, merge."""

from __future__ import annotations

import click

from ._helpers import (
    main,
    _edit_tree,
    _load_tree,
    _parse_block_ref,
    _status,
    _tree_option,
)


@main.command()
@_tree_option
@click.argument("path")
@click.argument("refs", nargs=-1)
@click.pass_context
def put(ctx, path, refs):
    """Append block references to the file at PATH, creating it if needed.

    Each REF is HASH or HASH:LOWER-UPPER.
    """
    block_refs = [_parse_block_ref(r) for r in refs]
    with _edit_tree(ctx) as builder:
        builder.put_file(path, block_refs)
    _status(ctx, f"put {path} ({len(block_refs)} refs)")


@main.command()
@_tree_option
@click.argument("path")
@click.pass_context
def mkdir(ctx, path):
    """Create the directory at PATH and any missing parents."""
    with _edit_tree(ctx) as builder:
        builder.put_dir(path)
    _status(ctx, f"mkdir {path}")


@main.command()
@_tree_option
@click.argument("path")
@click.pass_context
def rm(ctx, path):
    """Remove the file or directory at PATH."""
    with _edit_tree(ctx) as builder:
        builder.delete_file(path)
    _status(ctx, f"rm {path}")


@main.command()
@_tree_option
@click.argument("sources", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.pass_context
def merge(ctx, sources):
    """Merge the tree files SOURCES, in order, into the tree.

    Files present in both get the source's block references appended.
    Nothing is written if any path conflicts.
    """
    others = [_load_tree(src) for src in sources]
    with _edit_tree(ctx) as builder:
        builder.merge(others)
    _status(ctx, f"merged {len(others)} trees")

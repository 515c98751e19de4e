"""Console script for ``hashtree``; reports a missing ``cli`` extra instead of a traceback."""

import sys


def main():
    try:
        from .cli import main as cli_main
    except ImportError:
        print(
            "Error: the 'hashtree' command requires the 'cli' extra.\n"
            "Install the command-line extra with:  pip install 'hashtree[cli]'",
            file=sys.stderr,
        )
        raise SystemExit(1)
    cli_main()

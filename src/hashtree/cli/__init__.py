"""hashtree CLI — build and inspect marshaled trees."""

from ._helpers import main  # noqa: F401 — entry point

# Import command modules to register Click commands with the main group.
from . import _basic, _write  # noqa: F401

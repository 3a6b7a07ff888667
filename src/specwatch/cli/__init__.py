"""
CLI interface for Specwatch using Typer.
"""

# Shared apps and options must be imported before the command modules
from ._shared import app, main_callback, RootOption  # noqa: F401

# Import submodules to register their commands with the Typer apps
from . import daemon  # noqa: F401
from . import query  # noqa: F401
from . import lock  # noqa: F401
from . import config  # noqa: F401


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

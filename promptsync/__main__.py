"""
Run the CLI directly.

Usage:
    python -m promptsync sync
    python -m promptsync list --json
"""

from .main import cli


if __name__ == "__main__":
    cli()

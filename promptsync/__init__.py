"""
promptsync — Keep a local prompt library in sync with remote Git repositories.

Files are mirrored per repository and selectively activated into a single
flat directory (symlinks, with a copy fallback where symlinks are denied).
"""

__version__ = "0.4.0"

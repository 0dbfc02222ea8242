"""
Repository Mirror — Durable per-repository copies of fetched prompt files.

This package provides the on-disk mirror, collision-aware workspace naming,
the sync engine that keeps mirrors current, and persisted sync status.
"""

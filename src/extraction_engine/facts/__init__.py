"""Mutable per-run fact collectors and their frozen snapshots."""

"""Diffing, merging, conflict resolution and the bundling pipeline."""

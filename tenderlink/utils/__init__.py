"""Shared pure helpers (normalization)."""

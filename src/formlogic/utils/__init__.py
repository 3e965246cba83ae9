"""Shared helpers for expression parsing and name normalization."""

# src/daer/__init__.py
"""Daer Novel: collaborative serialized fiction authoring with queued LLM generation."""

__version__ = "0.3.0"

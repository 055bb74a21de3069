# src/daer/core/env.py
"""Environment configuration utilities."""

from __future__ import annotations

from dotenv import load_dotenv


def load_env() -> None:
    """Load environment variables from ``.env`` then ``.env.local`` overrides."""
    load_dotenv(".env")
    load_dotenv(".env.local", override=True)


__all__ = ["load_env"]

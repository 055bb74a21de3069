# src/daer/web/__init__.py
"""HTTP, SSE and WebSocket surface."""

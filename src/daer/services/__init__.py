# src/daer/services/__init__.py
"""Domain services shared by the HTTP layer and the worker."""

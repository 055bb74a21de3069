# src/daer/core/errors.py
"""Exception hierarchy shared by the API, the worker and the agents."""

from __future__ import annotations


class DaerError(Exception):
    """Base exception for all Daer errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(DaerError):
    """A novel, chapter, task or other record does not exist."""


class ConfigurationError(DaerError):
    """No usable AI provider configuration could be resolved."""


class UnsupportedProviderError(ConfigurationError):
    """The configured provider id has no adapter."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported AI provider: {provider}")
        self.provider = provider


class ProviderError(DaerError):
    """The LLM backend rejected or failed a request."""


class StructuredOutputError(DaerError):
    """The model did not return valid structured output."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ConsistencyCheckFailed(DaerError):
    """Generated prose was rejected by the consistency check."""

    def __init__(self, issues: list[str]) -> None:
        joined = ", ".join(issues) if issues else "no issues reported"
        super().__init__(f"Consistency check failed: {joined}")
        self.issues = issues


class TaskCancelled(DaerError):
    """The task was cancelled while its job was running."""


class AppError(DaerError):
    """Operational error surfaced to HTTP clients with a status code."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "AppError",
    "ConfigurationError",
    "ConsistencyCheckFailed",
    "DaerError",
    "NotFoundError",
    "ProviderError",
    "StructuredOutputError",
    "TaskCancelled",
    "UnsupportedProviderError",
]

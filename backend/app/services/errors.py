from __future__ import annotations


class ServiceError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class LoadError(ServiceError):
    """Problem, profile or history lookup failed (`not_found` / `store_unavailable`)."""


class PersistenceError(ServiceError):
    """Saving code or a submission failed."""

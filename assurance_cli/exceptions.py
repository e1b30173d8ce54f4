from __future__ import annotations


class AssuranceError(Exception):
    """Base exception with user-friendly message."""
    pass


class ConfigError(AssuranceError):
    pass


class ApiError(AssuranceError):
    pass


class AuthenticationError(ApiError):
    pass


class InvalidInputError(AssuranceError):
    """A value outside its enumeration or a level outside 1..K."""
    pass


class PersistenceError(AssuranceError):
    pass

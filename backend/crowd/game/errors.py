from __future__ import annotations


class GameError(Exception):
    """Base for failures reported back to the client that caused them."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GameError):
    pass


class CapacityError(GameError):
    pass


class ProviderError(GameError):
    pass


class PersistenceError(GameError):
    pass

from __future__ import annotations


class HousingError(Exception):
    pass


class ValidationError(HousingError):
    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class PersistenceError(HousingError):
    pass

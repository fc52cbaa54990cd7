"""Error taxonomy for registry operations."""

from __future__ import annotations


class RegistryError(Exception):
    """Base exception for registry operations.

    Carries the run/dataset/version context so callers can log and retry.
    """

    def __init__(
        self,
        message: str,
        *,
        run_number: int | None = None,
        dataset_name: str | None = None,
        version: int | None = None,
    ) -> None:
        self.run_number = run_number
        self.dataset_name = dataset_name
        self.version = version
        super().__init__(message)

    @property
    def context(self) -> dict[str, object]:
        return {
            "run_number": self.run_number,
            "dataset_name": self.dataset_name,
            "version": self.version,
        }

    def __str__(self) -> str:
        base = super().__str__()
        parts = [f"{key}={value}" for key, value in self.context.items() if value is not None]
        if not parts:
            return base
        return f"{base} ({', '.join(parts)})"


class MissingActorError(RegistryError):
    """Raised when a mutating call does not state who performs it."""


class LengthMismatchError(RegistryError):
    """Raised when previous and observed lumisection sequences differ in length."""

    def __init__(
        self,
        previous_length: int,
        observed_length: int,
        *,
        run_number: int | None = None,
        dataset_name: str | None = None,
    ) -> None:
        self.previous_length = previous_length
        self.observed_length = observed_length
        super().__init__(
            f"Cannot diff lumisections: previous has {previous_length} entries, "
            f"observed has {observed_length}",
            run_number=run_number,
            dataset_name=dataset_name,
        )


class TransactionConflictError(RegistryError):
    """Raised when a write transaction lost a race and should be retried."""


class DocumentInternFailure(RegistryError):
    """Raised when a document could be neither found nor created."""


class RunNotFoundError(RegistryError):
    """Raised when a run projection does not exist."""


class RunAlreadyExistsError(RegistryError):
    """Raised when creating a run that is already registered."""


class RunStateError(RegistryError):
    """Raised when a run is not in a state that allows the requested change."""


class InvalidFilterError(RegistryError):
    """Raised when a run filter or sorting cannot be translated to a query."""


__all__ = [
    "DocumentInternFailure",
    "InvalidFilterError",
    "LengthMismatchError",
    "MissingActorError",
    "RegistryError",
    "RunAlreadyExistsError",
    "RunNotFoundError",
    "RunStateError",
    "TransactionConflictError",
]

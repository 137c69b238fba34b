from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Protocol, TypeVar

from pulse.v1.core.exceptions import HandlerNotFoundError

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


@dataclass(frozen=True)
class JobContext:
    """Identity of the job cycle a handler is running for."""

    job_id: str
    job_type: str
    owner_id: str
    run_at: datetime

    @property
    def epoch(self) -> str:
        """Stable identifier of this cycle, used in dedup keys."""
        return f"{self.job_id}:{self.run_at.isoformat()}"


# Job Registry - scheduled job handlers
class JobHandler(Protocol):
    """Protocol for handlers dispatched by the job runner."""

    async def handle(
        self,
        payload: dict[str, Any],
        owner_id: str,
        context: JobContext,
    ) -> dict[str, Any] | None:
        """
        Run one cycle of a scheduled job.

        Args:
            payload: Job-specific parameters, opaque to the runner
            owner_id: Subject the job acts on behalf of
            context: Job id, type and scheduled time of this cycle

        Raises:
            Any exception marks the cycle as failed.
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for job handlers keyed by job type."""

    def __init__(self):
        super().__init__("Job")

    def get(self, name: str) -> JobHandler:
        try:
            return super().get(name)
        except KeyError:
            raise HandlerNotFoundError(name) from None

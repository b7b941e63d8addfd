"""
Generic result container for pymixed computations.

The Result class is the envelope that records how a computation ran:
its payload, structured metadata, and timing. Fitted models keep the
envelope of their last successful optimization.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (status, evaluation counts)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) for reproducibility
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for statistical computations.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific payload (e.g. the optimizer's report)
        info: Structured metadata (method, convergence, diagnostics)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the algorithm that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=opt_result,
        ...     info={'criterion': 'REML', 'n_evals': 41},
        ...     timing={'total_seconds': 0.02, 'optimization': 0.019},
        ...     backend_name='nelder_mead',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)

"""Transaction execution."""

from epochi.execution.executor import TransactionExecutor
from epochi.execution.strategies import (
    DEFAULT_RATES,
    SimulatedSwapStrategy,
    SwapFill,
    SwapStrategy,
)
from epochi.execution.types import ExecutionErrorKind, ExecutionResult

__all__ = [
    "DEFAULT_RATES",
    "ExecutionErrorKind",
    "ExecutionResult",
    "SimulatedSwapStrategy",
    "SwapFill",
    "SwapStrategy",
    "TransactionExecutor",
]

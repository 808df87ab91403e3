"""Exception hierarchy for chart data and rendering failures."""

from __future__ import annotations

from typing import List, Sequence, Tuple

__all__ = ["ChartError", "NetworkFailure", "EmptySeries", "RenderCapabilityFailure"]


class ChartError(Exception):
    """Base class for recoverable chart failures."""


class NetworkFailure(ChartError):
    """A provider attempt failed: timeout, bad status or malformed body."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class EmptySeries(NetworkFailure):
    """A provider answered but returned no usable price points."""

    def __init__(self, provider: str) -> None:
        super().__init__(provider, "empty price series")


class RenderCapabilityFailure(ChartError):
    """No render tier could be initialised, or a live tier broke."""

    def __init__(self, failures: Sequence[Tuple[str, str]]) -> None:
        self.failures: List[Tuple[str, str]] = list(failures)
        summary = "; ".join(f"{tier}: {reason}" for tier, reason in self.failures)
        super().__init__(summary or "no render tiers available")

"""
Timing helpers.

    with timeit("synthesize", meta={"provider": "minimax"}) as t:
        audio = await provider.synthesize(text, voice)
    info(log, "synth_done", seconds=t.timing.seconds)

Uses time.perf_counter() for wall-clock measurement; works the same
around awaited code since it only brackets the block.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    A finished measurement.

    Attributes:
        name: What was timed.
        seconds: Elapsed wall-clock time.
        meta: Optional context attached by the caller.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """Context manager that stores a Timing on exit (also on exception)."""

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0, meta=self.meta)

    @property
    def elapsed(self) -> float:
        """Seconds since entry, usable inside the block."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0

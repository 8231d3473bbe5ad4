"""Abstract base class for raw sample sources."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class SampleSource(ABC):
    """Delivers frames of unsigned 8-bit amplitude samples, one per tick.

    Subclasses declare metadata and implement ``is_available`` and
    ``read_frame``; ``open``/``close`` default to no-ops.
    """

    name: str = "unnamed"
    description: str = ""
    platform_requirements: list[str] = []

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the source can operate on this machine."""
        ...

    def open(self) -> None:
        """Acquire the underlying device."""

    def close(self) -> None:
        """Release the underlying device."""

    @abstractmethod
    def read_frame(self, n_samples: int) -> np.ndarray:
        """Read one frame.

        Returns
        -------
        numpy.ndarray
            1-D uint8 array of *n_samples* samples in arrival order.

        Raises
        ------
        CaptureError
            If the device fails; the caller decides what to do.
        """
        ...

    def __enter__(self) -> SampleSource:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"

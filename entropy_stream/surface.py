"""Output surfaces for the bit-stream renderer.

A surface receives the renderer's grid of palette indices whenever at
least one row changed and turns it into something visible: a numpy RGB
raster or a rich ``Text`` for the terminal.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from rich.color import Color
from rich.style import Style
from rich.text import Text

if TYPE_CHECKING:
    from entropy_stream.config import StreamConfig

# Cell values in the render grid.
UNSET = 0
ZERO = 1
ONE = 2

HALF_BLOCK = "▀"


@dataclass(frozen=True)
class Palette:
    """Colours for unset cells, 0 bits and 1 bits (any rich colour string)."""

    unset: str = "#000000"
    zero: str = "#1b1b1b"
    one: str = "#4caf50"

    def colors(self) -> tuple[str, str, str]:
        """Colours indexed by cell value."""
        return (self.unset, self.zero, self.one)

    def rgb(self) -> np.ndarray:
        """``(3, 3)`` uint8 lookup table indexed by cell value."""
        return np.array(
            [tuple(Color.parse(c).get_truecolor()) for c in self.colors()],
            dtype=np.uint8,
        )


class RenderSurface(ABC):
    """Something the renderer can present its grid to."""

    @abstractmethod
    def present(self, cells: np.ndarray, palette: Palette) -> None:
        """Show *cells*, an ``(H, W)`` uint8 array of ``UNSET/ZERO/ONE``."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class ArraySurface(RenderSurface):
    """Keeps the latest frame as an RGB image, *pixel_scale* pixels per cell."""

    def __init__(self, pixel_scale: int = 1) -> None:
        self.pixel_scale = max(1, int(pixel_scale))
        self.image: np.ndarray | None = None
        self.cells: np.ndarray | None = None
        self.frames = 0

    @classmethod
    def from_config(cls, config: StreamConfig) -> ArraySurface:
        return cls(pixel_scale=config.pixel_scale)

    def present(self, cells: np.ndarray, palette: Palette) -> None:
        self.cells = cells.copy()
        img = palette.rgb()[cells]
        if self.pixel_scale > 1:
            s = self.pixel_scale
            img = img.repeat(s, axis=0).repeat(s, axis=1)
        self.image = img
        self.frames += 1


class RichSurface(RenderSurface):
    """Terminal waterfall: two grid rows per line using upper half blocks."""

    def __init__(self) -> None:
        self.text = Text("")
        self.frames = 0

    @staticmethod
    def to_text(cells: np.ndarray, palette: Palette) -> Text:
        colors = palette.colors()
        height, width = cells.shape
        styles: dict[tuple[int, int], Style] = {}
        text = Text(no_wrap=True, overflow="crop")
        for top in range(0, height, 2):
            upper = cells[top]
            lower = cells[top + 1] if top + 1 < height else None
            for x in range(width):
                key = (int(upper[x]), int(lower[x]) if lower is not None else -1)
                style = styles.get(key)
                if style is None:
                    bg = colors[key[1]] if key[1] >= 0 else None
                    style = styles[key] = Style(color=colors[key[0]], bgcolor=bg)
                text.append(HALF_BLOCK, style=style)
            if top + 2 < height:
                text.append("\n")
        return text

    def present(self, cells: np.ndarray, palette: Palette) -> None:
        self.text = self.to_text(cells, palette)
        self.frames += 1

    def __rich__(self) -> Text:
        return self.text

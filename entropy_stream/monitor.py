"""Live entropy monitor: interactive TUI dashboard.

Shows, refreshed from the driver's own loop:
- the pool's bit stream as a scrolling waterfall
- pool size, digest count and output grade
- the latest whitening digest in hex
- input level meter and byte histogram sparkline
"""

from __future__ import annotations

import signal
import threading
import time

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from entropy_stream.conditioning import DigestEvent
from entropy_stream.driver import Driver
from entropy_stream.stats import byte_histogram, quick_quality
from entropy_stream.surface import RichSurface

# ── Sparkline characters ──
SPARK = "▁▂▃▄▅▆▇█"


def _sparkline(values: list[float], width: int = 32) -> str:
    """Render a sparkline string from values."""
    if not values:
        return ""
    recent = values[-width:]
    mn, mx = min(recent), max(recent)
    rng = mx - mn if mx > mn else 1.0
    return "".join(SPARK[min(int((v - mn) / rng * 7), 7)] for v in recent)


def _level_bar(level: float, width: int = 24) -> Text:
    """Input level 0-100 as a bar."""
    filled = int(min(max(level, 0.0), 100.0) / 100 * width)
    return Text("█" * filled + "░" * (width - filled), style="green")


def _hex_digest(event: DigestEvent | None) -> Text:
    """Colorized hex of the last digest, 16 bytes per line."""
    if event is None:
        return Text("[waiting for first digest...]", style="dim")
    text = Text()
    for i, b in enumerate(event.digest):
        if b < 64:
            style = "blue"
        elif b < 128:
            style = "green"
        elif b < 192:
            style = "yellow"
        else:
            style = "red"
        text.append(f"{b:02x}", style=style)
        if (i + 1) % 16 == 0 and i < len(event.digest) - 1:
            text.append("\n")
        elif (i + 1) % 2 == 0:
            text.append(" ")
    return text


class EntropyMonitor:
    """Live TUI over a :class:`Driver` whose renderer draws to a :class:`RichSurface`."""

    def __init__(self, driver: Driver, surface: RichSurface, refresh_rate: float = 0.1,
                 console: Console | None = None):
        self.driver = driver
        self.surface = surface
        self.refresh_rate = refresh_rate
        self.console = console or Console()
        self._stop = threading.Event()
        self._start_time = 0.0
        self._digests = 0
        driver.pipeline.on_digest(self._on_digest)

    def _on_digest(self, event: DigestEvent) -> None:
        self._digests += 1

    def _build_pool_panel(self) -> Panel:
        pipeline = self.driver.pipeline
        pool = pipeline.pool
        elapsed = time.monotonic() - self._start_time if self._start_time else 0
        rate = self._digests * 32 / elapsed if elapsed > 0 else 0
        status = pipeline.status()

        q = quick_quality(pool.tail(4096), "pool")
        grade = q.get("grade", "?")
        grade_color = {
            "A": "green", "B": "blue", "C": "yellow", "D": "red", "F": "bright_red"
        }.get(grade, "white")
        hist = byte_histogram(pool.tail(4096))
        hist_spark = _sparkline([float(c) for c in hist.reshape(32, 8).sum(axis=1)], width=32)

        text = Text()
        text.append("  Grade: ", style="bold")
        text.append(grade, style=f"bold {grade_color}")
        text.append(f"  Shannon: {q.get('shannon_entropy', 0.0):.2f}/8.0\n")
        text.append(f"  Pool: {len(pool):,} bytes  Rate: {rate:,.0f} B/s  Digests: {self._digests}\n")
        text.append(f"  Batch: {status['batch_fill']}/{status['batch_size']}")
        text.append(f"  Bits: {''.join(map(str, status['partial_bits'])):<8}\n")
        text.append("  Level: ", style="dim")
        text.append_text(_level_bar(self.driver.level))
        text.append(f" {self.driver.level:3.0f}%\n")
        text.append("  Bytes: ", style="dim")
        text.append(hist_spark, style="cyan")
        return Panel(text, title="Whitened Pool", border_style="green")

    def _build_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=8),
        )

        elapsed = time.monotonic() - self._start_time if self._start_time else 0
        header = Text()
        header.append("  ENTROPY STREAM", style="bold magenta")
        header.append(f"  │  source {self.driver.source.name}", style="cyan")
        header.append(f"  │  uptime {int(elapsed)}s", style="dim")
        header.append("  │  [ctrl+c] quit", style="bright_black")
        layout["header"].update(Panel(header, border_style="bright_black"))

        renderer = self.driver.pipeline.renderer
        layout["body"].update(Panel(
            self.surface,
            title=f"Bit stream {renderer.width}x{renderer.height} "
                  f"({renderer.last_bit_count:,} bits drawn)",
            border_style="magenta",
        ))

        layout["footer"].split_row(
            Layout(self._build_pool_panel(), name="pool", ratio=2),
            Layout(Panel(_hex_digest(self.driver.pipeline.last_digest),
                         title="Last Digest", border_style="blue"), name="digest", ratio=1),
        )
        return layout

    def run(self) -> None:
        """Run the live monitor until Ctrl+C."""
        self.console.clear()
        self._start_time = time.monotonic()
        self.driver.start()

        def _sigint(sig, frame):
            self._stop.set()

        old_handler = signal.signal(signal.SIGINT, _sigint)
        last_refresh = 0.0
        try:
            with Live(self._build_layout(), console=self.console, auto_refresh=False, screen=True) as live:
                while not self._stop.is_set():
                    started = time.monotonic()
                    self.driver.tick()
                    if started - last_refresh >= self.refresh_rate:
                        live.update(self._build_layout(), refresh=True)
                        last_refresh = started
                    remaining = self.driver.tick_interval - (time.monotonic() - started)
                    if remaining > 0:
                        self._stop.wait(remaining)
        finally:
            self._stop.set()
            signal.signal(signal.SIGINT, old_handler)
            pool_bytes = len(self.driver.pipeline.pool)
            ticks = self.driver.ticks
            self.driver.stop()
            self.console.clear()
            self.console.print("[green]Monitor stopped.[/]")
            elapsed = time.monotonic() - self._start_time
            self.console.print(f"  Pool bytes: {pool_bytes:,}")
            self.console.print(f"  Digests: {self._digests}")
            self.console.print(f"  Ticks: {ticks}")
            self.console.print(f"  Uptime: {elapsed:.0f}s")

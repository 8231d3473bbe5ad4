"""CLI for entropy-stream."""

from __future__ import annotations

import base64
import sys

import click

from entropy_stream import __version__
from entropy_stream.config import StreamConfig, load_config
from entropy_stream.exceptions import CaptureError, ConfigValidationError
from entropy_stream.log import configure_logging


def _source_options(f):
    """Options shared by every command that captures."""
    f = click.option("--seed", type=int, default=None, help="Seed for the simulated source.")(f)
    f = click.option("--bias", type=float, default=None, help="P(LSB=1) for the simulated source.")(f)
    f = click.option("--device", default=None, help="Audio input device index or name.")(f)
    f = click.option("--source", type=click.Choice(["audio", "simulated"]), default=None,
                     help="Sample source (default from ENTROPY_STREAM_SOURCE or 'audio').")(f)
    return f


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING...).")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """entropy-stream: whitened randomness from physical noise, drawn as it grows."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


def _config(ctx: click.Context, **overrides) -> StreamConfig:
    try:
        config = load_config(
            source=overrides.pop("source", None),
            device=overrides.pop("device", None),
            simulated_bias=overrides.pop("bias", None),
            seed=overrides.pop("seed", None),
            log_level=ctx.obj.get("log_level") if ctx.obj else None,
            **overrides,
        )
    except ConfigValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(2)
    configure_logging(config.log_level)
    return config


def _driver(config: StreamConfig, surface=None):
    from entropy_stream.driver import Driver
    from entropy_stream.sources import make_source

    return Driver.from_config(config, make_source(config), surface=surface)


# ────────────────────────────────────────────────────────────
# Discovery
# ────────────────────────────────────────────────────────────


@main.command()
def devices() -> None:
    """List audio input devices usable as a sample source."""
    from entropy_stream.sources.audio import list_input_devices

    try:
        found = list_input_devices()
    except Exception as e:
        click.echo(f"Audio backend unavailable: {e}")
        return
    click.echo(f"Found {len(found)} input device(s):\n")
    for d in found:
        click.echo(f"  [{d['index']:>2}] {d['name']:<40} {d['channels']} ch @ {d['default_samplerate']:.0f} Hz")
    if not found:
        click.echo("  (none found)")


# ────────────────────────────────────────────────────────────
# Output
# ────────────────────────────────────────────────────────────


@main.command()
@_source_options
@click.option("--format", "fmt", type=click.Choice(["raw", "hex", "base64"]), default="hex",
              help="Output format.")
@click.option("--bytes", "n_bytes", default=0, type=click.IntRange(min=0), help="Total bytes (0 = infinite).")
@click.pass_context
def stream(ctx, source, device, bias, seed, fmt: str, n_bytes: int) -> None:
    """Stream whitened pool bytes to stdout as digests complete.

    Examples:

        entropy-stream stream --format hex --bytes 256

        entropy-stream stream --source simulated --format raw | xxd | head
    """
    config = _config(ctx, source=source, device=device, bias=bias, seed=seed)
    driver = _driver(config)
    total = 0

    try:
        driver.start()
        while driver.running:
            for event in driver.tick():
                data = event.digest
                if n_bytes:
                    data = data[: n_bytes - total]
                if fmt == "raw":
                    sys.stdout.buffer.write(data)
                    sys.stdout.buffer.flush()
                elif fmt == "hex":
                    sys.stdout.write(data.hex())
                    sys.stdout.flush()
                else:
                    sys.stdout.write(base64.b64encode(data).decode())
                    sys.stdout.flush()
                total += len(data)
                if 0 < n_bytes <= total:
                    break
            if 0 < n_bytes <= total:
                break
    except CaptureError as e:
        click.echo(f"\nCapture failed: {e}", err=True)
        sys.exit(1)
    except (BrokenPipeError, KeyboardInterrupt):
        pass
    finally:
        driver.stop()
    if fmt != "raw":
        click.echo()


@main.command()
@_source_options
@click.option("--count", default=4, type=int, help="Number of digests to print.")
@click.pass_context
def digests(ctx, source, device, bias, seed, count: int) -> None:
    """Print each whitening digest as it completes."""
    config = _config(ctx, source=source, device=device, bias=bias, seed=seed)
    driver = _driver(config)

    def _print(event) -> None:
        click.echo(f"#{event.index:<5} {event.hex}")

    driver.pipeline.on_digest(_print)
    try:
        driver.start()
        while driver.running and driver.pipeline.hasher.batches < count:
            driver.tick()
    except CaptureError as e:
        click.echo(f"Capture failed: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        driver.stop()


@main.command()
@_source_options
@click.option("--length", default=16, type=int, help="Password length (clamped to 8-64).")
@click.option("--upper/--no-upper", default=True)
@click.option("--lower/--no-lower", default=True)
@click.option("--digits/--no-digits", default=True)
@click.option("--symbols/--no-symbols", default=True)
@click.option("--max-ticks", default=100_000, type=int, help="Give up after this many capture ticks.")
@click.pass_context
def password(ctx, source, device, bias, seed, length, upper, lower, digits, symbols, max_ticks) -> None:
    """Collect whitened entropy and turn it into a password."""
    from entropy_stream.consumers import (
        PASSWORD_MIN_POOL,
        Status,
        build_charset,
        clamp_password_length,
        generate_password,
    )

    if not build_charset(upper, lower, digits, symbols):
        click.echo("Error: select at least one character set.", err=True)
        sys.exit(2)

    config = _config(ctx, source=source, device=device, bias=bias, seed=seed)
    driver = _driver(config)
    need = max(PASSWORD_MIN_POOL, clamp_password_length(length))
    try:
        driver.start()
        driver.run_until(need, max_ticks=max_ticks)
        result = generate_password(driver.pipeline.pool, length, upper, lower, digits, symbols)
    except CaptureError as e:
        click.echo(f"Capture failed: {e}", err=True)
        sys.exit(1)
    finally:
        driver.stop()

    if result.status is not Status.OK:
        click.echo(result.message, err=True)
        sys.exit(1)
    click.echo(result.password)


# ────────────────────────────────────────────────────────────
# Monitor
# ────────────────────────────────────────────────────────────


@main.command()
@_source_options
@click.option("--width", type=int, default=None, help="Bits per waterfall row.")
@click.option("--height", type=int, default=None, help="Waterfall rows.")
@click.option("--bottom", is_flag=True, default=False, help="Insert new rows at the bottom.")
@click.option("--fixed-chunk", is_flag=True, default=False, help="Disable adaptive chunk sizing.")
@click.option("--refresh", default=0.1, type=float, help="Screen refresh interval in seconds.")
@click.pass_context
def monitor(ctx, source, device, bias, seed, width, height, bottom, fixed_chunk, refresh) -> None:
    """Live dashboard: bit waterfall, pool status, last digest, input level.

    Examples:

        entropy-stream monitor

        entropy-stream monitor --source simulated --bias 0.8

        entropy-stream monitor --width 96 --height 40 --bottom
    """
    from entropy_stream.monitor import EntropyMonitor
    from entropy_stream.surface import RichSurface

    overrides = {"matrix_width": width, "matrix_height": height}
    if bottom:
        overrides["newest_on_top"] = False
    if fixed_chunk:
        overrides["adaptive_chunk"] = False
    config = _config(ctx, source=source, device=device, bias=bias, seed=seed, **overrides)
    surface = RichSurface()
    mon = EntropyMonitor(_driver(config, surface=surface), surface, refresh_rate=refresh)
    try:
        mon.run()
    except CaptureError as e:
        click.echo(f"Capture failed: {e}", err=True)
        sys.exit(1)

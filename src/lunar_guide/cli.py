"""
Command-line interface for the lunar guide.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import logging

import click

from .blessing import GeminiBlessingProvider, receive_blessing
from .config import Config
from .ephemeris import MeeusMoonEphemeris, moon_phase_name
from .guidance import GeoPosition, GuidanceCalculator, GuidanceResult
from .orientation import Orientation
from .session import SessionState, create_session
from .sources import SimulatedOrientationSource, load_orientation_samples


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


TIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M"]


def _load_config(config: Optional[Path], lat: Optional[float] = None,
                 lon: Optional[float] = None, verbose: bool = False) -> Config:
    cfg = Config.from_yaml(config) if config else Config()
    if lat is not None:
        cfg.location.latitude = lat
    if lon is not None:
        cfg.location.longitude = lon
    cfg.verbose = cfg.verbose or verbose
    if cfg.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return cfg


def _as_utc(when: Optional[datetime]) -> datetime:
    if when is None:
        return datetime.now(timezone.utc)
    return when.replace(tzinfo=timezone.utc)


def _format_guidance(result: GuidanceResult, hint: str) -> str:
    if not result.ready:
        return "Waiting for sensor data..."
    if result.in_view:
        return (f"IN VIEW  dAz={result.delta_azimuth:+6.2f}°  "
                f"dAlt={result.delta_altitude:+6.2f}°")
    x, y = result.screen_position
    return (f"{hint or 'Almost there'}  dAz={result.delta_azimuth:+7.2f}°  "
            f"dAlt={result.delta_altitude:+7.2f}°  target=({x:.1f}%, {y:.1f}%)  "
            f"arrow={result.pointer_rotation:.0f}°")


config_option = click.option(
    "-c", "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration YAML file"
)
verbose_option = click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output"
)


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Lunar Guide - Point your camera at the Moon."""
    pass


@main.command()
@click.option("--lat", type=float, required=True, help="Observer latitude (degrees North)")
@click.option("--lon", type=float, required=True, help="Observer longitude (degrees East)")
@click.option("--time", "when", type=click.DateTime(formats=TIME_FORMATS),
              default=None, help="UTC time (default: now)")
def moon(lat: float, lon: float, when: Optional[datetime]):
    """
    Show where the Moon is for an observer.
    """
    when = _as_utc(when)
    ephemeris = MeeusMoonEphemeris()
    calculator = GuidanceCalculator(ephemeris)

    position = calculator.locate_moon(GeoPosition(lat, lon), when)
    illumination = calculator.illumination(when)

    click.echo(f"Moon for {lat:.4f}, {lon:.4f} at {when.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    click.echo(f"  Azimuth: {position.azimuth:.2f}°")
    click.echo(f"  Altitude: {position.altitude:.2f}°")
    click.echo(f"  Illumination: {illumination * 100:.0f}%")
    click.echo(f"  Phase: {moon_phase_name(ephemeris.phase_of(when))}")
    if position.altitude < 0:
        click.echo(click.style("  The Moon is below the horizon", fg="yellow"))


@main.command()
@click.option("--lat", type=float, required=True, help="Observer latitude (degrees North)")
@click.option("--lon", type=float, required=True, help="Observer longitude (degrees East)")
@click.option("--heading", type=float, required=True, help="Device compass heading (degrees)")
@click.option("--pitch", type=float, required=True,
              help="Device pitch (degrees, 90 = upright facing the horizon)")
@click.option("--time", "when", type=click.DateTime(formats=TIME_FORMATS),
              default=None, help="UTC time (default: now)")
def guide(lat: float, lon: float, heading: float, pitch: float, when: Optional[datetime]):
    """
    Compute guidance for a single device orientation.
    """
    when = _as_utc(when)
    calculator = GuidanceCalculator(MeeusMoonEphemeris(), clock=lambda: when)

    celestial = calculator.locate_moon(GeoPosition(lat, lon))
    orientation = Orientation(heading=heading % 360.0, pitch=pitch)
    result = calculator.compute(orientation, celestial)

    click.echo(f"Moon: az={celestial.azimuth:.2f}°, alt={celestial.altitude:.2f}°")
    click.echo(f"Device aim: az={orientation.heading:.2f}°, alt={90.0 - pitch:.2f}°")
    separation = calculator.angular_separation(orientation, celestial)
    click.echo(f"Separation: {separation:.2f}°")
    click.echo(_format_guidance(result, calculator.direction_hint(result)))


@main.command()
@click.argument("samples_path", type=click.Path(exists=True, path_type=Path))
@config_option
@click.option("--lat", type=float, default=None, help="Override observer latitude")
@click.option("--lon", type=float, default=None, help="Override observer longitude")
@click.option("--camera/--no-camera", default=None, help="Open the camera during the session")
@verbose_option
def replay(samples_path: Path, config: Optional[Path], lat: Optional[float],
           lon: Optional[float], camera: Optional[bool], verbose: bool):
    """
    Run a search session over recorded orientation samples.

    SAMPLES_PATH: YAML file with heading/pitch/roll samples
    """
    cfg = _load_config(config, lat, lon, verbose)
    if camera is not None:
        cfg.camera.enabled = camera

    samples = load_orientation_samples(samples_path)
    click.echo(f"Replaying {len(samples)} samples from {samples_path}")

    session = create_session(cfg)
    session.begin()

    if session.state is SessionState.FAILED:
        click.echo(click.style(f"✗ {session.failure.message}", fg="red"))
        sys.exit(1)

    try:
        for idx, sample in enumerate(samples):
            session.tick()
            result = session.handle_orientation(sample)
            hint = session.calculator.direction_hint(result)
            click.echo(f"[{idx:4d}] {_format_guidance(result, hint)}")
    finally:
        session.finish()


@main.command()
@config_option
@click.option("--lat", type=float, default=None, help="Override observer latitude")
@click.option("--lon", type=float, default=None, help="Override observer longitude")
@click.option("--heading", type=float, default=180.0, help="Starting heading")
@click.option("--pitch", type=float, default=60.0, help="Starting pitch")
@click.option("--jitter", type=float, default=0.5, help="Sensor noise (degrees)")
@click.option("--seed", type=int, default=None, help="Random seed for sensor noise")
@click.option("--max-steps", type=click.IntRange(min=1), default=60, help="Give up after this many moves")
@click.option("--samples-per-step", type=click.IntRange(min=1), default=20,
              help="Orientation samples between moves")
@verbose_option
def demo(config: Optional[Path], lat: Optional[float], lon: Optional[float],
         heading: float, pitch: float, jitter: float, seed: Optional[int],
         max_steps: int, samples_per_step: int, verbose: bool):
    """
    Simulate a user following the hints until the Moon is in view.
    """
    cfg = _load_config(config, lat, lon, verbose)
    device = SimulatedOrientationSource(heading=heading, pitch=pitch,
                                        jitter_deg=jitter, seed=seed)

    session = create_session(cfg)
    session.begin()

    if session.state is not SessionState.ACTIVE:
        message = session.failure.message if session.failure else "Session did not start"
        click.echo(click.style(f"✗ {message}", fg="red"))
        sys.exit(1)

    celestial = session.celestial
    click.echo(f"Moon: az={celestial.azimuth:.2f}°, alt={celestial.altitude:.2f}°")

    try:
        for step in range(max_steps):
            for _ in range(samples_per_step):
                result = session.handle_orientation(device.read())

            hint = session.calculator.direction_hint(result)
            click.echo(f"[{step:3d}] {_format_guidance(result, hint)}")

            if result.in_view:
                click.echo(click.style("✓ Moon found!", fg="green"))
                click.echo(f'  "{session.request_blessing()}"')
                return

            device.slew(result)

        click.echo(click.style(f"✗ Moon not found after {max_steps} steps", fg="red"))
        sys.exit(1)
    finally:
        session.finish()


@main.command()
@config_option
def bless(config: Optional[Path]):
    """
    Print a blessing (a fixed one when no API key is set).
    """
    cfg = _load_config(config)
    provider = GeminiBlessingProvider.from_env(
        cfg.blessing.api_key_env,
        model=cfg.blessing.model,
        temperature=cfg.blessing.temperature,
        max_output_tokens=cfg.blessing.max_output_tokens,
        timeout=cfg.blessing.timeout_s,
    )
    click.echo(receive_blessing(provider))


@main.command()
@click.argument("output_path", type=click.Path(path_type=Path))
def init_config(output_path: Path):
    """
    Create a default configuration file.
    """
    cfg = Config()
    cfg.to_yaml(output_path)
    click.echo(f"Created configuration file: {output_path}")


if __name__ == "__main__":
    main()

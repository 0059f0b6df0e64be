import asyncio
import logging
from pathlib import Path

import typer

from openframe.errors import StartupError
from openframe.supervisor.controller import FrameController
from openframe.supervisor.frame_config import CONFIG_PATH, FrameConfigStore, build_api_url

app = typer.Typer(help="Run an Openframe display frame.")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
        ],
    )


@app.command()
def start(
    config: Path = typer.Option(CONFIG_PATH, "--config", help="Path to the frame config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Connect the frame and display its artwork until interrupted."""
    configure_logging(verbose)
    store = FrameConfigStore(config)
    if not store.config["auth"]["username"]:
        typer.echo(f"No credentials configured in {config}.")
        raise typer.Exit(code=1)

    async def _run() -> None:
        controller = FrameController(store)
        await controller.run_forever()

    try:
        asyncio.run(_run())
    except StartupError as e:
        typer.echo(str(e))
        raise typer.Exit(code=1)


@app.command()
def status(
    config: Path = typer.Option(CONFIG_PATH, "--config", help="Path to the frame config file"),
):
    """Show the configured server and frame."""
    store = FrameConfigStore(config)
    device = store.device()
    typer.echo(f"API: {build_api_url(store.settings)}")
    typer.echo(f"Frame: {device.name or '(unnamed)'} ({device.id or 'not registered'})")
    artwork = device.current_artwork
    if artwork is None:
        typer.echo("Artwork: none")
    else:
        typer.echo(f"Artwork: {artwork.id} [{artwork.format.start_command}] {artwork.url}")
    typer.echo(f"Extensions: {len(device.plugins)}")
    for name, version in device.plugins.items():
        typer.echo(f" - {name} ({version})")


if __name__ == "__main__":
    app()

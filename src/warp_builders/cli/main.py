"""Main CLI entry point for warp-builders."""

import asyncio
import os
import subprocess
from importlib import metadata
from typing import List, Optional

import typer

from ..core.exceptions import WarpBuildersError
from ..core.utils.rich_ui import console, create_builders_panel, create_tools_table


def get_version() -> str:
    """Get the package version from metadata."""
    try:
        return metadata.version("warp-builders")
    except metadata.PackageNotFoundError:
        return "unknown"


# command: warp-builders
app = typer.Typer(
    name="warp-builders",
    help="Provision WarpBuild remote Docker builders for buildx",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.command(
    "run",
    context_settings={"ignore_unknown_options": True},
)
def run_cmd(
    command: List[str] = typer.Argument(..., help="Command to run against the builders"),
    profile: str = typer.Option(
        ..., "--profile", "-p", envvar="WARPBUILD_PROFILE_NAME", help="Builder profile name"
    ),
    api_key: Optional[str] = typer.Option(
        None, "--api-key", envvar="WARPBUILD_API_KEY", help="WarpBuild API key"
    ),
    timeout: float = typer.Option(600.0, "--timeout", help="Global timeout in seconds"),
):
    """Set up remote builders, run COMMAND with BUILDX_BUILDER set, then clean up."""
    try:
        exit_code = asyncio.run(_run(command, profile, api_key, timeout))
    except WarpBuildersError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    raise typer.Exit(exit_code)


async def _run(
    command: List[str], profile: str, api_key: Optional[str], timeout: float
) -> int:
    from ..builders import RemoteBuilders
    from ..config import BuilderConfig

    builders = RemoteBuilders(
        BuilderConfig.from_env(profile, api_key=api_key, timeout=timeout)
    )
    async with builders:
        builders.assign()
        await builders.check_required_tools()
        await builders.setup()
        console.print(
            create_builders_panel(builders.get_builder_name(), builders.get_builder_ids())
        )

        env = {**os.environ, "BUILDX_BUILDER": builders.get_builder_name()}
        try:
            result = await asyncio.to_thread(subprocess.run, command, env=env)
        except FileNotFoundError:
            console.print(f"[red]Error:[/red] command not found: {command[0]}")
            return 127
        return result.returncode


@app.command("check")
def check_cmd():
    """Check that docker and buildx are available and print their info."""
    from ..core.buildx import BuildxClient

    buildx = BuildxClient()
    try:
        asyncio.run(buildx.check_required_tools())
    except WarpBuildersError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    info = asyncio.run(buildx.docker_info())
    console.print(create_tools_table(info))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
):
    """WarpBuild remote builders CLI."""
    if version:
        console.print(f"warp-builders v{get_version()}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()

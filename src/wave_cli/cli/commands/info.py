"""Client and service version command."""

import asyncio
import dataclasses
from typing import Optional

import typer

from ...client import WaveClient
from ...config import ClientConfig
from ...core.exceptions import WaveError
from ...models import ServiceInfo
from ..utils.output import console, print_error


async def run_info(config: ClientConfig) -> ServiceInfo:
    async with WaveClient(config) as client:
        return await client.service_info()


def info_command(client_version: str, wave_endpoint: Optional[str] = None):
    """Show the client version and the version of the Wave service."""
    try:
        config = ClientConfig.from_env()
        if wave_endpoint:
            config = dataclasses.replace(config, endpoint=wave_endpoint)

        info = asyncio.run(run_info(config))
    except WaveError as e:
        print_error(e)
        raise typer.Exit(1)

    console.print(f"Client: {client_version}", highlight=False)
    console.print(f"Server: {info.version or 'unknown'}", highlight=False)
    console.print(f"Endpoint: {config.endpoint}", highlight=False)

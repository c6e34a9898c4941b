"""Container inspect command."""

import asyncio
import dataclasses
from typing import Any, Dict, Optional

import typer

from ...client import WaveClient
from ...config import ClientConfig
from ...core.exceptions import ValidationError, WaveError
from ...models import ContainerInspectRequest, with_layer_uris
from ..utils.output import OutputFormat, dump_output, print_error, print_result


async def run_inspect(
    request: ContainerInspectRequest, config: ClientConfig
) -> Dict[str, Any]:
    """Inspect an image and add the blob uri of each manifest layer."""
    async with WaveClient(config) as client:
        response = await client.inspect(request)
    return with_layer_uris(response)


def inspect_command(
    image: str,
    output: Optional[OutputFormat] = None,
    tower_token: Optional[str] = None,
    tower_endpoint: Optional[str] = None,
    tower_workspace_id: Optional[int] = None,
    wave_endpoint: Optional[str] = None,
):
    """Print the container spec of an image."""
    try:
        if not image or not image.strip():
            raise ValidationError("Missing container image to inspect")

        config = ClientConfig.from_env()
        if wave_endpoint:
            config = dataclasses.replace(config, endpoint=wave_endpoint)

        request = ContainerInspectRequest(
            container_image=image,
            tower_access_token=tower_token or config.tower_token,
            tower_endpoint=tower_endpoint or config.tower_endpoint,
            tower_workspace_id=tower_workspace_id or config.tower_workspace_id,
        )
        spec = asyncio.run(run_inspect(request, config))
    except WaveError as e:
        print_error(e)
        raise typer.Exit(1)

    print_result(dump_output(spec, output or OutputFormat.json))

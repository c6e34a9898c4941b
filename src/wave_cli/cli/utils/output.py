"""Rendering of command results for the terminal."""

import json
from enum import Enum
from typing import Any, Optional

import yaml
from rich.console import Console
from rich.markup import escape

from ...core.exceptions import BuildFailedError
from ...core.utils.json import normalize_for_json
from ...models import AwaitedResponse, SubmitContainerResponse

console = Console()
err_console = Console(stderr=True)


class OutputFormat(str, Enum):
    json = "json"
    yaml = "yaml"


def dump_output(obj: Any, output: OutputFormat) -> str:
    """Serialize a result as indented JSON or block-style YAML."""
    data = normalize_for_json(obj)
    if output == OutputFormat.yaml:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip()
    return json.dumps(data, indent=4)


def render_response(
    response: SubmitContainerResponse, output: Optional[OutputFormat] = None
) -> Optional[str]:
    """
    Render a submission result.

    Without an output format only the target image is printed, and an awaited
    build that did not succeed is reported as an error.

    Raises:
        BuildFailedError: If the awaited build failed and no output format is set
    """
    if output is not None:
        return dump_output(response, output)

    if isinstance(response, AwaitedResponse) and not response.succeeded:
        raise BuildFailedError(response.reason, response.details_uri)

    return response.target_image


def print_error(error: BaseException) -> None:
    err_console.print(f"[red]error:[/red] {escape(str(error))}")


def print_result(text: Optional[str]) -> None:
    if text:
        console.print(text, markup=False, highlight=False, soft_wrap=True)

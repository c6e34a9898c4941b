"""Container submission command."""

import asyncio
import dataclasses
import logging
import signal
from datetime import timedelta
from typing import Optional, Union

import typer

from ...client import WaveClient, should_await
from ...config import ClientConfig, PollConfig
from ...core.exceptions import WaveError
from ...core.utils.duration import parse_duration
from ...models import AwaitedResponse, SubmitContainerResponse
from ...request import (
    SubmitOptions,
    create_request,
    prepare_config,
    prepare_context,
    validate_submit_options,
)
from ...runtime.poller import AwaitState
from ..utils.output import (
    OutputFormat,
    err_console,
    print_error,
    print_result,
    render_response,
)

log = logging.getLogger(__name__)


class BuildCancelled(Exception):
    """The user interrupted the wait for a build."""


def _install_interrupt_handler(cancel_event: asyncio.Event) -> bool:
    # SIGINT wakes the poller instead of tearing down the event loop
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError, ValueError):
        log.debug("Signal handlers not supported, Ctrl-C aborts the wait")
        return False
    return True


async def run_submit(
    options: SubmitOptions,
    config: ClientConfig,
    timeout: timedelta,
    cancel_event: Optional[asyncio.Event] = None,
) -> Union[SubmitContainerResponse, AwaitedResponse]:
    """
    Pack, submit and optionally await a container request.

    Raises:
        BuildCancelled: If the wait was cancelled before the build finished
        WaveError: On validation, packing, transport or build failures
    """
    # packing and remote file reads block, keep them off the event loop
    context = await asyncio.to_thread(
        prepare_context, options.context_dir, options.preserve_timestamps, config.limits
    )
    container_config = await asyncio.to_thread(prepare_config, options, config.limits)
    request = await asyncio.to_thread(
        create_request, options, context, container_config
    )

    async with WaveClient(config) as client:
        response = await client.submit(request)
        log.debug(f"Submit response: {response}")

        build_id = should_await(response) if options.wait else None
        if build_id is None:
            return response

        if cancel_event is None:
            cancel_event = asyncio.Event()
        handler_installed = _install_interrupt_handler(cancel_event)
        try:
            outcome = await client.await_build(
                build_id,
                poll=PollConfig(
                    interval=config.poll.interval, timeout=timeout.total_seconds()
                ),
                cancel_event=cancel_event,
            )
        finally:
            if handler_installed:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    if outcome.state == AwaitState.CANCELLED:
        raise BuildCancelled(build_id)

    return AwaitedResponse.merge(response, outcome.status)


def submit_command(
    options: SubmitOptions,
    timeout: str,
    output: Optional[OutputFormat],
    wave_endpoint: Optional[str] = None,
):
    """Submit a container request and print the result."""
    try:
        config = ClientConfig.from_env()
        if wave_endpoint:
            config = dataclasses.replace(config, endpoint=wave_endpoint)

        options = dataclasses.replace(
            options,
            tower_token=options.tower_token or config.tower_token,
            tower_endpoint=options.tower_endpoint or config.tower_endpoint,
            tower_workspace_id=options.tower_workspace_id or config.tower_workspace_id,
        )
        validate_submit_options(options)
        await_timeout = parse_duration(timeout)

        response = asyncio.run(run_submit(options, config, await_timeout))
        result = render_response(response, output)
    except BuildCancelled as e:
        err_console.print(f"[yellow]Wait for build {e} cancelled[/yellow]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        err_console.print("[yellow]Operation cancelled[/yellow]")
        raise typer.Exit(1)
    except WaveError as e:
        log.debug("Submit failed", exc_info=True)
        print_error(e)
        raise typer.Exit(1)

    print_result(result)

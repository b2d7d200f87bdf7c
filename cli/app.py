from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from pydantic import TypeAdapter, ValidationError

from app.schemas import DispatchItem
from cli.config import load_config
from cli.render import ConsoleSink
from logging_config import configure_logging
from models.records import DeviceAddress, DispatchRequest, DispatchResult, FanConfig
from services.dispatcher import (
    DispatchEngine,
    RetryPolicy,
    build_registry_client,
    new_cancel_token,
)
from settings import get_settings


@dataclass
class CLIState:
    engine: DispatchEngine
    deadline: Optional[float]


app = typer.Typer(
    help="Push JSON configuration updates to managed IoT devices.",
    context_settings={"help_option_names": ["-h", "--help"]},
)

_BATCH_ADAPTER = TypeAdapter(List[DispatchItem])


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    max_attempts: Optional[int] = typer.Option(
        None,
        "--max-attempts",
        min=1,
        help="Attempts per device when the registry is unavailable (defaults to DISPATCH_MAX_ATTEMPTS or 3).",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-c",
        min=1,
        help="Devices dispatched in parallel (defaults to DISPATCH_CONCURRENCY or 1).",
    ),
    deadline: Optional[float] = typer.Option(
        None,
        "--deadline",
        min=0.0,
        help="Seconds before outstanding dispatches are cancelled.",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging()
    settings = get_settings()
    policy = RetryPolicy(
        max_attempts=max_attempts or settings.max_attempts,
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
    )
    engine = DispatchEngine(
        client=build_registry_client(),
        retry_policy=policy,
        concurrency=concurrency or settings.concurrency,
    )
    ctx.obj = CLIState(engine=engine, deadline=deadline)
    ctx.call_on_close(engine.shutdown)


def _resolve_address(
    project: Optional[str],
    location: Optional[str],
    registry: Optional[str],
    device: Optional[str],
) -> DeviceAddress:
    config = load_config(
        project_id=project, location=location, registry_id=registry, device_id=device
    )
    missing = [
        option
        for option, value in (
            ("--project", config.project_id),
            ("--registry", config.registry_id),
            ("--device", config.device_id),
        )
        if not value
    ]
    if missing:
        raise typer.BadParameter(f"Missing device identity: {', '.join(missing)}.")
    return DeviceAddress(
        project_id=config.project_id or "",
        location=config.location,
        registry_id=config.registry_id or "",
        device_id=config.device_id or "",
    )


def _load_payload(payload: Optional[str], payload_file: Optional[Path]) -> Dict[str, Any]:
    if payload is not None and payload_file is not None:
        raise typer.BadParameter("Use either --payload or --payload-file, not both.")
    if payload_file is not None:
        payload = payload_file.read_text(encoding="utf-8")
    if payload is None:
        raise typer.BadParameter("A payload is required (--payload or --payload-file).")
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Payload is not valid JSON: {exc.msg}.") from exc
    if not isinstance(document, dict):
        raise typer.BadParameter("Payload must be a JSON object.")
    return document


def _run(state: CLIState, requests: List[DispatchRequest]) -> None:
    token = new_cancel_token(state.deadline)
    results: List[DispatchResult] = state.engine.dispatch_many(requests, token)
    exit_code = ConsoleSink().emit(results)
    if exit_code:
        raise typer.Exit(code=exit_code)


_PROJECT_OPTION = typer.Option(None, "--project", "-p", help="Project ID (or DEVICE_PROJECT_ID).")
_LOCATION_OPTION = typer.Option(None, "--location", "-l", help="Registry region (or DEVICE_LOCATION).")
_REGISTRY_OPTION = typer.Option(None, "--registry", "-r", help="Registry ID (or DEVICE_REGISTRY_ID).")
_DEVICE_OPTION = typer.Option(None, "--device", "-d", help="Device ID (or DEVICE_ID).")


@app.command("push")
def push_command(
    ctx: typer.Context,
    project: Optional[str] = _PROJECT_OPTION,
    location: Optional[str] = _LOCATION_OPTION,
    registry: Optional[str] = _REGISTRY_OPTION,
    device: Optional[str] = _DEVICE_OPTION,
    payload: Optional[str] = typer.Option(None, "--payload", help="JSON object to push."),
    payload_file: Optional[Path] = typer.Option(
        None,
        "--payload-file",
        exists=True,
        dir_okay=False,
        readable=True,
        help="File holding the JSON object to push.",
    ),
) -> None:
    """Push a JSON config to a single device."""
    state = _get_state(ctx)
    address = _resolve_address(project, location, registry, device)
    document = _load_payload(payload, payload_file)
    _run(state, [DispatchRequest(address=address, payload=document)])


@app.command("batch")
def batch_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON array of {deviceAddress, payload}."
    ),
) -> None:
    """Push configs to every device listed in a batch file."""
    state = _get_state(ctx)
    try:
        items = _BATCH_ADAPTER.validate_json(file.read_bytes())
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid batch file: {exc.error_count()} error(s).\n{exc}") from exc
    typer.echo(f"Dispatching {len(items)} config(s) from {file} ...")
    _run(state, [item.to_domain() for item in items])


@app.command("fan")
def fan_command(
    ctx: typer.Context,
    project: Optional[str] = _PROJECT_OPTION,
    location: Optional[str] = _LOCATION_OPTION,
    registry: Optional[str] = _REGISTRY_OPTION,
    device: Optional[str] = _DEVICE_OPTION,
    on: bool = typer.Option(True, "--on/--off", help="Switch the fan on or off."),
    speed: int = typer.Option(20, "--speed", help="Fan speed, 0-100."),
) -> None:
    """Push a fan on/off and speed config to a single device."""
    state = _get_state(ctx)
    address = _resolve_address(project, location, registry, device)
    try:
        fan = FanConfig(on=on, speed=speed)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--speed") from exc
    _run(state, [DispatchRequest(address=address, payload=fan.as_payload())])

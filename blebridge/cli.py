"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from blebridge.core.config_loader import load_config, with_overrides
from blebridge.core.errors import BridgeError, PayloadError
from blebridge.core.logging_setup import configure_logging
from blebridge.core.model import SendResult
from blebridge.core.payload import decode_base64_payload
from blebridge.core.service import BridgeService

app = typer.Typer(help="Scan for, inspect, and print to a BLE peripheral over GATT")

_CONFIG_HELP = "Path to config.yaml (default: $BLEBRIDGE_CONFIG or XDG config dir)"
_ADDRESS_HELP = "Device address (default: ble.printer_address)"


def _build_service(config_path: Path | None, **ble_overrides) -> BridgeService:
    loaded = load_config(config_path)
    configure_logging(loaded.config.logging)
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return BridgeService(config=with_overrides(loaded.config, **ble_overrides))


async def _with_session(service: BridgeService, address: str | None, operation):
    await service.start()
    try:
        async with service.connected(address) as normalized:
            return normalized, await operation()
    finally:
        await service.drain_background()


def _echo_sent(result: SendResult, address: str) -> None:
    mode = "acknowledged" if result.acknowledged else "unacknowledged"
    typer.echo(
        f"Sent {result.bytes_sent} bytes to {address} in {result.fragments} "
        f"fragment(s) of <= {result.chunk_size} bytes ({mode})"
    )


@app.command("scan")
def scan(
    seconds: int | None = typer.Option(None, "--seconds", help="Scan window in seconds"),
    name: str | None = typer.Option(None, "--name", help="Only show devices whose name contains this"),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Scan for advertising BLE devices."""
    try:
        service = _build_service(config)

        async def _run():
            await service.start()
            return await service.scan(seconds, name)

        hits = asyncio.run(_run())
        if not hits:
            typer.echo("No BLE devices found")
            return
        for hit in hits:
            typer.echo(f"{hit.address} {hit.name or '<unnamed>'} rssi={hit.rssi}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("status")
def status(
    address: str | None = typer.Option(None, "--address", help=_ADDRESS_HELP),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Connect, verify the link, and report whether it is usable."""
    try:
        service = _build_service(config)
        _, connected = asyncio.run(_with_session(service, address, service.status))
        typer.echo(f"connected={str(connected).lower()}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("describe")
def describe(
    address: str | None = typer.Option(None, "--address", help=_ADDRESS_HELP),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """List GATT services and characteristics of the device."""
    try:
        service = _build_service(config)
        _, description = asyncio.run(_with_session(service, address, service.describe))
        typer.echo(f"Device: {description.address}")
        for svc in description.services:
            typer.echo(f"  service {svc.uuid}")
            for ch in svc.characteristics:
                caps = ", ".join(sorted(cap.value for cap in ch.capabilities)) or "-"
                typer.echo(f"    {ch.uuid}: {caps}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("print-text")
def print_text(
    text: str,
    address: str | None = typer.Option(None, "--address", help=_ADDRESS_HELP),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Override ble.chunk_size"),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Print TEXT as an ESC/POS receipt."""
    try:
        service = _build_service(config, chunk_size=chunk_size)
        target, result = asyncio.run(
            _with_session(service, address, lambda: service.print_text(text))
        )
        _echo_sent(result, target)
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("print-raw")
def print_raw(
    base64_data: str | None = typer.Option(None, "--base64", help="Base64-encoded payload"),
    file: Path | None = typer.Option(None, "--file", help="Read the payload from a file"),
    address: str | None = typer.Option(None, "--address", help=_ADDRESS_HELP),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Override ble.chunk_size"),
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Send raw bytes to the printer characteristic unchanged.

    Exactly one of --base64 or --file is required.
    """
    try:
        if (base64_data is None) == (file is None):
            raise PayloadError("pass exactly one of --base64 or --file")
        if file is not None:
            try:
                data = file.read_bytes()
            except OSError as exc:
                raise PayloadError(f"Could not read payload file {file}: {exc}") from exc
        else:
            data = decode_base64_payload(base64_data)

        service = _build_service(config, chunk_size=chunk_size)
        target, result = asyncio.run(
            _with_session(service, address, lambda: service.print_raw(data))
        )
        _echo_sent(result, target)
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("config")
def show_config(
    config: Path | None = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    """Show the effective configuration."""
    try:
        loaded = load_config(config)
        for warning in loaded.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        typer.echo(f"source: {loaded.source or '<defaults>'}")
        ble = loaded.config.ble
        typer.echo(f"ble.printer_address: {ble.printer_address}")
        typer.echo(f"ble.device_name_contains: {ble.device_name_contains!r}")
        typer.echo(f"ble.service_uuid: {ble.service_uuid or '<unset>'}")
        typer.echo(f"ble.write_characteristic_uuid: {ble.write_characteristic_uuid or '<unset>'}")
        typer.echo(f"ble.chunk_size: {ble.chunk_size}")
        typer.echo(f"ble.write_with_response: {str(ble.write_with_response).lower()}")
        typer.echo(f"ble.scan_seconds: {ble.scan_seconds}")
        typer.echo(f"logging.file_path: {loaded.config.logging.file_path or '<unset>'}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()

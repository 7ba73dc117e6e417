import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger

from relaylog.config import load_settings
from relaylog.errors import ConfigurationError
from relaylog.logger import RelayLogger

app = typer.Typer(help="relaylog CLI (health probes, test deliveries)")


def _build() -> RelayLogger:
    try:
        return RelayLogger(load_settings())
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)


@app.command()
def health():
    """Probe the sink and overflow store and print the aggregate status."""

    async def _run():
        async with _build() as relay:
            return await relay.health_check()

    status = asyncio.run(_run())
    typer.echo(status.model_dump_json(indent=2))
    if status.overall.status == "error":
        sys.exit(1)


@app.command()
def send(
    message: str = typer.Argument(..., help="Message text"),
    level: str = typer.Option("INFO", "--level", "-l", help="ERROR, WARN, INFO, DEBUG, SUCCESS"),
    data: Optional[str] = typer.Option(None, "--data", help="JSON document attached as data"),
    function_name: str = typer.Option("cli", "--function", help="Function name shown in the title"),
    file_name: str = typer.Option("relaylog", "--file", help="File name shown as author"),
):
    """Deliver a single entry and print its DeliveryResult."""
    payload = None
    if data is not None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.error(f"--data is not valid JSON: {e}")
            sys.exit(2)

    async def _run():
        async with _build() as relay:
            return await relay.log(
                level,
                message,
                data=payload,
                function_name=function_name,
                file_name=file_name,
            )

    result = asyncio.run(_run())
    typer.echo(
        json.dumps(
            {
                "success": result.success,
                "attempts": result.attempts,
                "error": result.error,
                "result": result.result,
            },
            indent=2,
            default=str,
        )
    )
    if result.success:
        logger.success(f"Delivered after {result.attempts} attempt(s)")
    else:
        logger.error(f"Delivery failed: {result.error}")
        sys.exit(1)


if __name__ == "__main__":
    app()

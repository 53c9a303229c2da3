import click


@click.group()
def main() -> None:
    """Mohano - real-time event broker for multi-agent monitoring."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from MOHANO_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from MOHANO_PORT or 7777).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the event broker server."""
    import uvicorn

    from mohano.broker.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "mohano.broker.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


@main.command()
@click.option("--url", default="http://localhost:7777", envvar="MOHANO_URL", show_default=True, help="Broker base URL.")
@click.option("--token", default=None, envvar="MOHANO_TOKEN", help="Workspace token (default workspace if omitted).")
@click.option("--api-key", default=None, envvar="MOHANO_API_KEY", help="Global key for the default workspace.")
@click.option("--timeout", default=1.0, type=float, show_default=True, help="Request timeout in seconds.")
def emit(url: str, token: str | None, api_key: str | None, timeout: float) -> None:
    """Forward one JSON event from stdin to the broker.

    Intended as an agent hook command: stamps the event with the current UTC
    time and never fails, so the calling agent is not disturbed.
    """
    import json

    import httpx
    from loguru import logger

    from mohano.broker.log import setup_logging
    from mohano.broker.managers.events import utc_timestamp
    from mohano.broker.settings import get_settings

    setup_logging(get_settings().log_level)

    raw = click.get_text_stream("stdin").read()
    if not raw.strip():
        return

    try:
        event = json.loads(raw)
    except json.JSONDecodeError:
        body = raw
    else:
        if isinstance(event, dict):
            event["timestamp"] = utc_timestamp()
        body = json.dumps(event)

    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    params = {"token": token} if token else None

    try:
        resp = httpx.post(f"{url.rstrip('/')}/api/events", content=body, headers=headers, params=params, timeout=timeout)
    except httpx.HTTPError as exc:
        logger.debug("emit: broker unreachable at {}: {}", url, exc)
        return
    if resp.is_error:
        logger.debug("emit: broker rejected event ({}): {}", resp.status_code, resp.text)


if __name__ == "__main__":
    main()

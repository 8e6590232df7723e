"""eventsource CLI entry point."""
from __future__ import annotations

import logging

import click


def _parse_headers(values: tuple[str, ...]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(
                f"expected 'Name: value', got {value!r}", param_hint="--header"
            )
        headers[name.strip()] = content.strip()
    return headers


@click.group()
def cli():
    """eventsource: read Server-Sent Event streams."""
    pass


@cli.command()
@click.argument("url")
@click.option("--header", "-H", "header_values", multiple=True, help="Extra request header, 'Name: value'")
@click.option("--last-event-id", default=None, help="Resume after this event id")
@click.option("--retry", type=int, default=None, help="Initial reconnection delay in milliseconds")
@click.option("--limit", type=int, default=None, help="Exit after this many events")
@click.option("--max-retries", default=0, type=int, help="Reconnect after this many consecutive errors")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log connection activity")
def tail(
    url: str,
    header_values: tuple[str, ...],
    last_event_id: str | None,
    retry: int | None,
    limit: int | None,
    max_retries: int,
    verbose: bool,
) -> None:
    """Print events from URL as they arrive, reconnecting when the stream ends."""
    from eventsource._retry import next_event_with_retry
    from eventsource.client import Client
    from eventsource.errors import SSEError
    from eventsource.types.config import RetryPolicy

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(message)s")

    headers = _parse_headers(header_values)
    policy = RetryPolicy(max_retries=max_retries)

    try:
        client = Client.from_env(
            url, headers=headers, retry=retry, last_event_id=last_event_id
        )
    except SSEError as exc:
        raise click.ClickException(str(exc)) from exc

    count = 0
    with client:
        while limit is None or count < limit:
            try:
                event = next_event_with_retry(client, policy)
            except SSEError as exc:
                raise click.ClickException(str(exc)) from exc
            click.echo(event.to_sse())
            count += 1


@cli.command()
@click.argument("stream_file", type=click.File("rb"))
def parse(stream_file) -> None:
    """Render the events in a captured text/event-stream file ('-' for stdin)."""
    from eventsource._sse import LineDecoder, StreamState, parse_sse_lines

    def read_lines():
        decoder = LineDecoder()
        for chunk in iter(lambda: stream_file.read(65536), b""):
            yield from decoder.decode(chunk)
        yield from decoder.flush()

    state = StreamState()
    count = 0
    try:
        for event in parse_sse_lines(read_lines(), state):
            click.echo(event.to_sse())
            count += 1
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"Stream is not valid UTF-8: {exc}") from exc

    click.echo(f"{count} events, last id {state.last_event_id!r}, retry {state.retry}ms", err=True)

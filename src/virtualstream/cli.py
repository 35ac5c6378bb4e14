"""CLI implementation for virtualstream."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from .core.model import ServerConfig, MAX_WINDOW, REQUEST_TIMEOUT
from .io.http_async import open_stream_reader_async, close_global_client
from .io.http_sync import open_stream_reader
from .peer import PeerClient, peer_url, stream_url
from .server import run_server

app = typer.Typer(add_completion=False, help="Serve byte ranges of files that live in a peer process.")


@app.callback()
def setup(
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, WARNING...)"),
):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_file_specs(specs: list[str]) -> dict[str, Path]:
    """Turn ``ID=PATH`` (or bare ``PATH``, id = file name) into a mapping."""
    files: dict[str, Path] = {}
    for spec in specs:
        file_id, sep, path = spec.partition("=")
        if not sep:
            path = file_id
            file_id = Path(path).name
        if not file_id or "/" in file_id:
            raise typer.BadParameter(f"Invalid file id in {spec!r}")
        files[file_id] = Path(path)
    return files


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8080, "--port", min=0, max=65535, help="Port to bind"),
    timeout: float = typer.Option(REQUEST_TIMEOUT, "--timeout", min=0.1, help="Seconds to wait for a peer answer"),
    max_window: int = typer.Option(MAX_WINDOW, "--max-window", min=1, help="Largest byte window per response"),
):
    """Run the virtual-stream server."""
    run_server(ServerConfig(host=host, port=port, timeout=timeout, max_window=max_window))


@app.command()
def peer(
    server: str = typer.Argument(..., help="Server base URL, e.g. http://127.0.0.1:8080"),
    files: list[str] = typer.Option(..., "--file", "-f", help="File to serve as ID=PATH (repeatable)"),
    kind: str = typer.Option("window", "--type", help="Client type to register as"),
):
    """Connect as a controlling client and serve local files."""
    sources = parse_file_specs(files)
    for file_id, path in sources.items():
        if not path.is_file():
            typer.echo(f"Not a file: {path}", err=True)
            raise typer.Exit(code=1)
        typer.echo(stream_url(server, file_id, path.stat().st_size))

    client = PeerClient(peer_url(server), sources, kind=kind)

    async def _run():
        try:
            await client.run()
        finally:
            await client.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass


async def _fetch_async(url: str, sink, start: int, length: Optional[int]) -> int:
    try:
        reader = await open_stream_reader_async(url)
        if length is None:
            return await reader.download(sink, start=start)
        data = await reader.fetch(start, length)
        sink.write(data)
        return len(data)
    finally:
        await close_global_client()


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Virtual stream URL"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    start: int = typer.Option(0, "--start", min=0, help="First byte to read"),
    length: Optional[int] = typer.Option(None, "--length", min=1, help="Bytes to read (default: to the end)"),
    sync: bool = typer.Option(False, "--sync", help="Force synchronous I/O"),
):
    """Read a virtual stream through range requests."""
    sink = open(output, "wb") if output else sys.stdout.buffer
    try:
        if sync:
            reader = open_stream_reader(url)
            if length is None:
                written = reader.download(sink, start=start)
            else:
                data = reader.fetch(start, length)
                sink.write(data)
                written = len(data)
        else:
            written = asyncio.run(_fetch_async(url, sink, start, length))
    except (IOError, OSError) as e:
        typer.echo(f"Fetch failed: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        if output:
            sink.close()

    if output:
        typer.echo(f"{written} bytes written to {output}", err=True)


if __name__ == "__main__":
    app()

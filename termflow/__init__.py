"""
termflow - Paced, prioritized terminal output for interactive CLIs.

This package provides:
- Priority output queue with admission control and a rate-limited render loop
- Progressive chunked/paginated rendering of large bodies
- Terminal capability state with signal-driven cleanup
- Cooperative cancellation primitives (tokens, timeouts, retry with backoff)
"""

__version__ = "0.1.0"

import asyncio
import os
import sys
from pathlib import Path

from rich.console import Console

from termflow.cli import display_health, parse_args
from termflow.config import Config
from termflow.logging_setup import setup_logging_from_env
from termflow.orchestrator import OutputContext

# Status output goes to stderr so piped content stays clean
console = Console(stderr=True)


def _read_input(path: str | None) -> str:
    if path is None or path == "-":
        text = sys.stdin.read()
    else:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    # The renderer terminates every chunk itself
    return text.removesuffix("\n")


async def _serve_health(context: OutputContext, port: int):
    import uvicorn

    from termflow.app import create_app

    server = uvicorn.Server(
        uvicorn.Config(create_app(context), host="127.0.0.1", port=port, log_level="warning")
    )
    return server, asyncio.create_task(server.serve())


async def run(args, content: str, config: Config) -> int:
    """Render content through an OutputContext."""
    async with OutputContext(config) as context:
        server = server_task = None
        if args.health_port:
            server, server_task = await _serve_health(context, args.health_port)
            console.print(f"[dim]Diagnostics on http://127.0.0.1:{args.health_port}[/dim]")

        try:
            await context.render(content, title=args.title, max_lines=args.max_lines)
            await context.flush()
        finally:
            if server is not None and server_task is not None:
                server.should_exit = True
                await server_task

        if args.health:
            display_health(console, context.check_health())
    return 0


def main() -> int:
    """Main entry point."""
    args = parse_args()

    # Set log level based on verbose flag
    if args.verbose:
        os.environ["TERMFLOW_LOG_LEVEL"] = "DEBUG"
    setup_logging_from_env()

    if args.path and args.path != "-":
        path = Path(args.path)
        if not path.exists():
            console.print(f"[red]Error:[/red] Path does not exist: {path}")
            return 1
        if not path.is_file():
            console.print(f"[red]Error:[/red] Path is not a file: {path}")
            return 1

    try:
        config = Config.from_env()
        if args.chunk_size:
            config.renderer.chunk_size = args.chunk_size
        if args.no_rate_limit:
            config.queue.rate_limiting = False
        config.validate()
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        return 1

    content = _read_input(args.path)

    try:
        return asyncio.run(run(args, content, config))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""
coachwire — terminal coaching client.

Runs a text-modality session against the realtime agent: a rich console
for the conversation and progress, prompt_toolkit for input.

Usage: python -m coachwire [--health] [--dimensions grow|modes]
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.panel import Panel

from coachwire import __version__
from coachwire.app import HELP_TEXT, CoachApp
from coachwire.core.config import config
from coachwire.core.errors import CredentialError
from coachwire.core.logging import setup_logging
from coachwire.credentials import CredentialAcquirer
from coachwire.render.console import ConsoleSurface


async def _health(console: Console) -> int:
    acquirer = CredentialAcquirer.from_config(config.credential)
    try:
        health = await acquirer.health_check()
    except CredentialError as e:
        console.print(f"[bold red]Health check failed:[/bold red] {e}")
        return 1
    console.print(f"status: {health.status}  hasApiKey: {health.has_api_key}")
    return 0 if health.has_api_key else 1


async def _run(console: Console, dimensions: str | None) -> int:
    settings = config
    if dimensions:
        settings = dataclasses.replace(
            config, analysis=dataclasses.replace(config.analysis, dimension_set=dimensions)
        )

    app = CoachApp(ConsoleSurface(console), settings=settings)

    console.print()
    console.print(
        Panel(
            f"[bold cyan]coachwire[/bold cyan] v{__version__} — Terminal Client\n"
            f"[dim]{HELP_TEXT}[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )

    await app.connect()

    session: PromptSession = PromptSession(history=InMemoryHistory())
    style = Style.from_dict({"prompt": "#888888"})
    try:
        while True:
            try:
                with patch_stdout():
                    line = await session.prompt_async(
                        [("class:prompt", "you → ")], style=style
                    )
            except (EOFError, KeyboardInterrupt):
                break
            if not await app.handle_input(line):
                break
    finally:
        await app.close()
        console.print("\n[dim]Goodbye.[/dim]")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="coachwire terminal client")
    parser.add_argument(
        "--health",
        action="store_true",
        help="Check the credential endpoint and exit",
    )
    parser.add_argument(
        "--dimensions",
        choices=["grow", "modes"],
        default=None,
        help="Progress dimension set (default: COACHWIRE_DIMENSION_SET or grow)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level for stderr output (default: COACHWIRE_LOG_LEVEL or INFO)",
    )
    args = parser.parse_args()

    setup_logging(level=args.log_level)
    console = Console()

    try:
        if args.health:
            code = asyncio.run(_health(console))
        else:
            code = asyncio.run(_run(console, args.dimensions))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()

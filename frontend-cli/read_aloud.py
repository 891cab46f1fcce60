#!/usr/bin/env python3
"""Read Aloud CLI - Terminal client for the PDF read-aloud backend.

Uploads a PDF, shows page text, and plays synthesized speech through
ffplay while rendering streamed progress.
"""

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.prompt import Prompt
from rich.style import Style

from narrator.client import (
    PlaybackController,
    PlaybackRequest,
    PlaybackState,
    SpeechClient,
    SpeechClientError,
    SubprocessAudioSink,
)

ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

HELP_TEXT = """[bold]Commands[/bold]
  /open <path>        Upload a PDF and show page 1
  /page <n>           Show page n
  /next, /prev        Move between pages
  /play               Read the current page aloud
  /all                Read from the current page to the end
  /pause, /resume     Pause or resume playback
  /stop               Stop playback
  /voice <id>         Change voice
  /speed <0.5-2.0>    Change speaking rate
  /temp <0.5-1.5>     Change expressiveness
  /status             Show current settings
  /quit               Exit"""


class ReadAloud:
    """Terminal reader bound to one open document at a time."""

    def __init__(self, server_url: str, voice: Optional[str] = None):
        self.server_url = server_url.rstrip("/")
        self.console = Console()
        self.client = SpeechClient(self.server_url)
        self.document: Optional[dict[str, Any]] = None
        self.page_number = 1
        self.page_count = 0
        self.voice_id = voice or ""
        self.speed = 1.0
        self.temperature = 1.0
        self.running = True
        self._progress: Optional[Progress] = None
        self._task_id: Optional[int] = None
        self.controller = PlaybackController(
            self.client,
            SubprocessAudioSink(),
            on_progress=self._on_progress,
            on_state_change=self._on_state_change,
        )

    def _on_progress(self, percent: int) -> None:
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, completed=percent)

    def _on_state_change(self, state: PlaybackState) -> None:
        if state is PlaybackState.ERRORED:
            self.console.print(
                f"Playback error: {self.controller.error}", style=ERROR_STYLE
            )

    async def _check_health(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.server_url}/health")
                response.raise_for_status()
        except httpx.HTTPError as exc:
            self.console.print(
                f"Cannot reach {self.server_url}: {exc}", style=ERROR_STYLE
            )
            return False
        try:
            options = await self.client.voice_options()
        except SpeechClientError:
            options = {}
        if not self.voice_id:
            self.voice_id = options.get("defaultVoice", "")
        self.console.print(f"[dim]Connected to {self.server_url}[/dim]")
        return True

    def _close_document(self) -> None:
        self.controller.close()
        self.document = None
        self.page_number = 1
        self.page_count = 0

    async def _open(self, path_text: str) -> None:
        path = Path(path_text).expanduser()
        if not path.is_file():
            self.console.print(f"No such file: {path}", style=ERROR_STYLE)
            return
        self._close_document()
        try:
            self.document = await self.client.upload_document(path)
        except SpeechClientError as exc:
            self.console.print(f"Upload failed: {exc}", style=ERROR_STYLE)
            return
        self.console.print(
            f"Opened [bold]{self.document['filename']}[/bold] "
            f"({self.document['size_bytes']} bytes)"
        )
        await self._show_page(1)

    async def _show_page(self, page_number: int) -> None:
        if self.document is None:
            self.console.print("Open a PDF first with /open <path>", style=INFO_STYLE)
            return
        try:
            page = await self.client.extract_page_text(
                document_id=self.document["document_id"], page_number=page_number
            )
        except SpeechClientError as exc:
            self.console.print(f"Extraction failed: {exc}", style=ERROR_STYLE)
            return
        if self.page_number != page_number:
            self.controller.stop()
        self.page_number = page["pageNumber"]
        self.page_count = page["pageCount"]
        body = page["text"] or "[dim](no text on this page)[/dim]"
        self.console.print(
            Panel(
                body,
                title=f"Page {self.page_number} / {self.page_count}",
                border_style="blue",
            )
        )

    def _request(self, continuous: bool) -> Optional[PlaybackRequest]:
        if self.document is None:
            self.console.print("Open a PDF first with /open <path>", style=INFO_STYLE)
            return None
        return PlaybackRequest(
            document_id=self.document["document_id"],
            page_number=self.page_number,
            voice_id=self.voice_id,
            speed=self.speed,
            temperature=self.temperature,
            continuous=continuous,
        )

    async def _play(self, continuous: bool = False) -> None:
        request = self._request(continuous)
        if request is None:
            return
        if self.controller.is_current(request):
            if self.controller.state is PlaybackState.PAUSED:
                self.controller.resume()
                self.console.print("[green]Resumed[/green]")
            else:
                self.console.print("[dim]Already playing[/dim]")
            return
        cached = request.fingerprint in self.controller.cache
        with Progress(
            TextColumn("[cyan]Synthesizing"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
            transient=True,
            disable=cached,
        ) as progress:
            self._progress = progress
            self._task_id = progress.add_task("synthesis", total=100)
            try:
                state = await self.controller.play(request)
            finally:
                self._progress = None
                self._task_id = None
        if state is PlaybackState.PLAYING:
            label = "cached audio" if cached else "new audio"
            self.console.print(f"[green]Playing[/green] [dim]({label})[/dim]")

    def _set_float(self, name: str, value: str, low: float, high: float) -> None:
        try:
            number = float(value)
        except ValueError:
            self.console.print(f"Invalid number: {value}", style=ERROR_STYLE)
            return
        if not low <= number <= high:
            self.console.print(
                f"{name} must be between {low} and {high}", style=ERROR_STYLE
            )
            return
        setattr(self, name, number)
        self.controller.stop()

    def _show_status(self) -> None:
        filename = self.document["filename"] if self.document else "-"
        self.console.print(
            f"document={filename} page={self.page_number}/{self.page_count} "
            f"voice={self.voice_id or '-'} speed={self.speed} "
            f"temperature={self.temperature} state={self.controller.poll().value}",
            style=INFO_STYLE,
        )

    async def _handle_command(self, line: str) -> None:
        command, _, argument = line.strip().partition(" ")
        argument = argument.strip()
        if command in ("/quit", "/exit"):
            self.running = False
        elif command == "/help":
            self.console.print(HELP_TEXT)
        elif command == "/open" and argument:
            await self._open(argument)
        elif command == "/page" and argument.isdigit():
            await self._show_page(int(argument))
        elif command == "/next":
            await self._show_page(self.page_number + 1)
        elif command == "/prev":
            await self._show_page(max(1, self.page_number - 1))
        elif command == "/play":
            await self._play()
        elif command == "/all":
            await self._play(continuous=True)
        elif command == "/pause":
            self.controller.pause()
        elif command == "/resume":
            self.controller.resume()
        elif command == "/stop":
            self.controller.stop()
        elif command == "/voice" and argument:
            self.voice_id = argument
            self.controller.stop()
        elif command == "/speed" and argument:
            self._set_float("speed", argument, 0.5, 2.0)
        elif command == "/temp" and argument:
            self._set_float("temperature", argument, 0.5, 1.5)
        elif command == "/status":
            self._show_status()
        else:
            self.console.print("Unknown command. Type /help", style=INFO_STYLE)

    async def run(self, initial_pdf: Optional[str] = None) -> None:
        if not await self._check_health():
            return
        self.console.print(
            "[bold]Read Aloud[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        if initial_pdf:
            await self._open(initial_pdf)

        try:
            while self.running:
                try:
                    line = Prompt.ask("[bold blue]>[/bold blue]")
                except EOFError:
                    self.console.print("\n[dim]Goodbye![/dim]")
                    break
                except KeyboardInterrupt:
                    self.console.print()
                    continue
                if line.strip():
                    await self._handle_command(line)
        finally:
            self._close_document()
            await self.client.aclose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Read Aloud - Terminal client for the PDF read-aloud backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  read-aloud paper.pdf                         Open a PDF on localhost:8000
  read-aloud --server http://pi:8000 doc.pdf   Use a remote server

Environment Variables:
  READ_ALOUD_SERVER    Default server URL
""",
    )
    parser.add_argument("pdf", nargs="?", help="PDF to open on startup")
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("READ_ALOUD_SERVER", "http://localhost:8000"),
        help="Backend server URL (default: http://localhost:8000)",
    )
    parser.add_argument("--voice", "-v", default=None, help="Voice identifier")
    args = parser.parse_args()

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    reader = ReadAloud(server_url=args.server, voice=args.voice)
    try:
        asyncio.run(reader.run(args.pdf))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

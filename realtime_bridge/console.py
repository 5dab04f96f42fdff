"""
Console client for the realtime voice bridge.

Connects to the OpenAI Realtime API through the bridge server, speaks through the
default microphone and speaker, and prints the conversation as it happens.

Usage:
    python -m realtime_bridge.console [--language es] [--server URL]

Commands (type and press Enter):
    m          toggle microphone mute
    r <lang>   restart the session, optionally with a new language
    s          show session state
    q          quit
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional, Set

from realtime_bridge.bot import RealtimeSession, project_conversation
from realtime_bridge.config.constants import EVENT_TYPE_SESSION_ERROR
from realtime_bridge.config.logging_config import configure_logging
from realtime_bridge.config.settings import Settings
from realtime_bridge.models.events import Event
from realtime_bridge.tools import build_default_registry

logger = configure_logging(os.getenv("LOG_LEVEL", "WARNING"))


class TranscriptPrinter:
    """Session listener that prints each new display turn once."""

    def __init__(self, session: RealtimeSession, out=None):
        self.session = session
        self.out = out or sys.stdout
        self._printed: Set[str] = set()

    def __call__(self, event: Event) -> None:
        for turn in project_conversation(self.session.events):
            if turn.id in self._printed:
                continue
            self._printed.add(turn.id)
            print(f"[{turn.role.value}] {turn.text}", file=self.out, flush=True)


async def handle_command(session: RealtimeSession, line: str) -> bool:
    """
    Apply one console command to the session.

    Returns:
        False when the user asked to quit, True otherwise
    """
    parts = line.strip().split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]

    if command == "q":
        return False
    if command == "m":
        muted = session.toggle_mute()
        print("Microphone muted" if muted else "Microphone live", flush=True)
    elif command == "r":
        language = args[0] if args else None
        print(f"Restarting session ({language or session.language})...", flush=True)
        await session.restart(language)
        print(f"Session {session.state.value}", flush=True)
    elif command == "s":
        pending = ", ".join(call.name for call in session.pending_calls) or "none"
        print(
            f"state={session.state.value} muted={session.muted} "
            f"language={session.language} pending_tools={pending}",
            flush=True,
        )
    else:
        print("Commands: m (mute), r <lang> (restart), s (status), q (quit)", flush=True)
    return True


async def run_console(settings: Settings, language: Optional[str] = None) -> int:
    """Run an interactive session until the user quits; returns the exit code."""
    session = RealtimeSession(settings, build_default_registry(settings), language=language)
    session.add_listener(TranscriptPrinter(session))

    print(f"Connecting to {settings.server_url} ({session.language})...", flush=True)
    if not await session.connect():
        errors = [e for e in session.events if e.type == EVENT_TYPE_SESSION_ERROR]
        reason = errors[-1].get("message") if errors else session.state.value
        print(f"Could not connect: {reason}", flush=True)
        await session.disconnect()
        return 1

    print("Connected. Commands: m (mute), r <lang> (restart), s (status), q (quit)", flush=True)
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            if not await handle_command(session, line):
                break
    finally:
        await session.disconnect()
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Talk to the OpenAI Realtime API through the bridge")
    parser.add_argument(
        "--language",
        default=None,
        help="Transcription language, ISO-639-1 (default: DEFAULT_LANGUAGE env var or en)",
    )
    parser.add_argument(
        "--server",
        default=None,
        help="Bridge server URL (default: BRIDGE_SERVER_URL env var or http://localhost:8000)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    if args.server:
        settings = settings.model_copy(update={"server_url": args.server})
    try:
        return asyncio.run(run_console(settings, args.language))
    except KeyboardInterrupt:
        logger.info("Console stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())

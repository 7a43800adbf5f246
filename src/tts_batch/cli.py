"""
Command-Line Interface for tts-batch.

Runs a whole generation session from the terminal: the text is chunked
with the provider's limit, synthesized batch by batch with a cooldown in
between, and the completed chunks are written as a ZIP bundle (or as
individual MP3 files with --split).

Chunks are synthesized in-process by default; with --server they are sent
to a running tts-batch server's /v1/synthesize endpoint.

Usage Examples:
    # Whole book chapter through MiniMax, ZIP into ./out
    tts-batch --file chapter1.txt --provider minimax --voice Wise_Woman

    # Positional text, individual files, through a server
    tts-batch "Hello there. General Kenobi." --provider fishaudio \\
        --voice 0123abcd --server http://localhost:8000 --split

    # Show chunking and batching without calling any vendor
    tts-batch --file chapter1.txt --provider elevenlabs --voice 21m00Tcm4TlvDq8ikWAM \\
        --dry-run --json

    # Provider table
    tts-batch --providers

Interrupts:
    First Ctrl-C pauses after the in-flight batch settles. On a terminal
    the run then waits for Enter to resume (q or Ctrl-C stops); a second
    Ctrl-C before the pause takes effect aborts. Completed chunks are
    written however the run ends.

Exit Codes:
    0  every chunk completed
    2  finished with failed chunks
    3  paused or aborted before the end
    1  nothing could be written / bad input

Environment Variables:
    TTS_BATCH_SETTINGS: Settings file (default config/settings.yaml)
    ELEVENLABS_API_KEY, FISH_AUDIO_API_KEY, MINIMAX_API_KEY, MINIMAX_GROUP_ID
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import os
import signal
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from tts_batch.core.config import BatchingConfig, Settings, load_settings, settings_from_env
from tts_batch.core.logging import configure_logging, get_logger, info, set_request_id, warn
from tts_batch.services.synthesis_service import SynthesisService
from tts_batch.services.validators import ValidationError
from tts_batch.tts.dispatch import HttpDispatcher, ServiceDispatcher
from tts_batch.tts.orchestrator import BatchOrchestrator, GenerationSession, RunState
from tts_batch.tts.packager import NothingToDownloadError, build_bundle, write_chunks
from tts_batch.tts.provider import UnsupportedProviderError, known_providers

_LOG = get_logger("tts-batch.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2
EXIT_STOPPED = 3


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-batch CLI (batched long-form synthesis)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Read the whole text from a file")

    parser.add_argument("--provider", help=f"Provider ({', '.join(known_providers())})")
    parser.add_argument("--voice", help="Vendor voice id")
    parser.add_argument("--model", help="Model override")
    parser.add_argument("--user-id", default="cli_user", help="User id sent with each chunk")

    parser.add_argument("--server", help="Base URL of a tts-batch server (default: in-process)")
    parser.add_argument("--token", help="Bearer token for --server")
    parser.add_argument("--settings", help="Settings file (default: TTS_BATCH_SETTINGS or config/settings.yaml)")

    parser.add_argument("--out", default="out", help="Output directory")
    parser.add_argument("--split", action="store_true", help="Write one MP3 per chunk instead of a ZIP")

    parser.add_argument("--batch-size", type=int, help="Chunks per batch")
    parser.add_argument("--cooldown", type=float, help="Seconds between batches")
    parser.add_argument("--timeout", type=float, help="Per-chunk call timeout in seconds (0 disables)")

    parser.add_argument("--dry-run", action="store_true", help="Chunk and plan without synthesis")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")
    parser.add_argument("--providers", action="store_true", help="List providers and exit")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    path = path or os.getenv("TTS_BATCH_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return settings_from_env()


def _load_text(args: argparse.Namespace) -> str:
    """
    Raises:
        SystemExit: No input, or both --file and inline text given.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        text = Path(args.file).read_text(encoding="utf-8")
        if not text.strip():
            raise SystemExit("Input file is empty.")
        return text
    if not text:
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _batching(base: BatchingConfig, args: argparse.Namespace) -> BatchingConfig:
    overrides: Dict[str, Any] = {}
    if args.batch_size is not None:
        if args.batch_size <= 0:
            raise SystemExit("--batch-size must be positive.")
        overrides["batch_size"] = args.batch_size
    if args.cooldown is not None:
        overrides["cooldown_s"] = max(0.0, args.cooldown)
    if args.timeout is not None:
        overrides["call_timeout_s"] = max(0.0, args.timeout)
    return dataclasses.replace(base, **overrides)


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _plan(session: GenerationSession, batching: BatchingConfig) -> Dict[str, Any]:
    """Dry-run summary: chunk boundaries and the batch schedule."""
    batches = len(session.batches)
    return {
        "ok": True,
        "dry_run": True,
        "provider": session.provider_config.identifier,
        "chunk_size": session.provider_config.chunk_size,
        "chunks": len(session.chunks),
        "batches": batches,
        "batch_size": batching.batch_size,
        "cooldown_s": batching.cooldown_s,
        "min_cooldown_total_s": max(0, batches - 1) * batching.cooldown_s,
        "items": [
            {"index": c.index, "chars": len(c), "start": c.start_char, "end": c.end_char}
            for c in session.chunks
        ],
    }


def _install_interrupts(session: GenerationSession) -> bool:
    """First SIGINT pauses, the second aborts. Returns False where unsupported."""
    loop = asyncio.get_running_loop()

    def on_sigint() -> None:
        if session.pause_requested or session.state == RunState.PAUSED:
            warn(_LOG, "abort_requested")
            session.abort()
        else:
            warn(_LOG, "pause_requested", hint="press Ctrl-C again to abort")
            session.pause()

    try:
        loop.add_signal_handler(signal.SIGINT, on_sigint)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _ask_resume(session: GenerationSession) -> bool:
    """Block on the terminal while paused. Enter resumes; q, EOF or Ctrl-C stops."""
    if not sys.stdin.isatty():
        return False
    # Plain KeyboardInterrupt while blocked in input()
    previous = signal.signal(signal.SIGINT, signal.default_int_handler)
    try:
        answer = input(f"{session.message}. Press Enter to resume or q to stop: ")
    except (EOFError, KeyboardInterrupt):
        return False
    finally:
        signal.signal(signal.SIGINT, previous)
    return answer.strip().lower() not in ("q", "quit", "stop")


async def _run(
    orchestrator: BatchOrchestrator,
    session: GenerationSession,
    ask_resume: Callable[[GenerationSession], bool] = _ask_resume,
) -> None:
    while True:
        installed = _install_interrupts(session)
        try:
            await orchestrator.run(session)
        finally:
            if installed:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

        if session.state != RunState.PAUSED or not ask_resume(session):
            return
        info(_LOG, "run_resumed", next_batch=session.next_batch)
        session.resume()


def _progress_listener(event: str, session: GenerationSession) -> None:
    p = session.progress
    if event in ("batch_completed", "paused", "aborted", "completed"):
        info(_LOG, event, batch=f"{p.completed_batches}/{p.total_batches}",
             completed=p.completed_chunks, failed=p.failed_chunks, state=session.state.value)


def _write_outputs(session: GenerationSession, out_dir: Path, split: bool) -> List[str]:
    chunks = session.ordered_audio_chunks()
    if split:
        return [str(p) for p in write_chunks(chunks, out_dir)]
    bundle = build_bundle(chunks, session.provider_config.display_name)
    return [str(bundle.write(out_dir))]


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

        1. Parse arguments, configure logging, load settings
        2. --providers: print the provider table and exit
        3. Chunk the text into a session (fails fast on blank text / voice)
        4. --dry-run: print the plan and exit
        5. Run the orchestrator, then write the completed chunks

    Returns:
        Exit code (see module docstring).
    """
    args = _parse_args(argv)

    configure_logging()
    set_request_id(str(uuid4())[:12])

    settings = _load_settings(args.settings)
    service = SynthesisService(settings)

    if args.providers:
        payload = {"ok": True, "providers": [c.to_dict() for c in service.provider_configs()]}
        _emit(payload, args.json)
        return EXIT_OK

    if not args.provider:
        raise SystemExit("--provider is required.")

    text = _load_text(args)
    try:
        provider_config = service.provider_config(args.provider)
    except UnsupportedProviderError as e:
        raise SystemExit(str(e))

    batching = _batching(settings.get_app_config().batching, args)

    try:
        session = GenerationSession.create(
            text, provider_config, args.voice or "", model=args.model,
            user_id=args.user_id, batch_size=batching.batch_size,
        )
    except ValidationError as e:
        raise SystemExit(e.message)

    if args.dry_run:
        plan = _plan(session, batching)
        if not args.json:
            info(_LOG, "dry_run", provider=plan["provider"], chunks=plan["chunks"], batches=plan["batches"])
        _emit(plan, args.json)
        print("DRY_RUN_OK")
        return EXIT_OK

    if args.server:
        headers = {"Authorization": f"Bearer {args.token}"} if args.token else None
        dispatch = HttpDispatcher(args.server, headers=headers)
    else:
        dispatch = ServiceDispatcher(service)

    orchestrator = BatchOrchestrator(dispatch, batching, listener=_progress_listener)
    asyncio.run(_run(orchestrator, session))

    try:
        outputs = _write_outputs(session, Path(args.out), args.split)
    except NothingToDownloadError as e:
        warn(_LOG, "nothing_written", error=e.message)
        outputs = []

    failed = [{"chunkIndex": c.chunk_index, "error": c.error} for c in session.failed_chunks()]
    payload = {
        "ok": session.state == RunState.COMPLETED and not failed,
        "state": session.state.value,
        "progress": session.progress.to_dict(),
        "failed": failed,
        "outputs": outputs,
    }
    _emit(payload, args.json)

    if not outputs:
        return EXIT_ERROR
    if session.state != RunState.COMPLETED:
        return EXIT_STOPPED
    if failed:
        return EXIT_PARTIAL
    print("CLI_OK")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())

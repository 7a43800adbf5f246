"""
Batch Orchestrator for Chunked Generation.

Drives an ordered list of text chunks through a synthesis dispatcher in
fixed-size batches, pacing batches with a cooldown so vendors' rate limits
are respected.

Run States:
    idle → running → {paused ⇄ running} → {completed | aborted}

Chunk States (one-way):
    pending → generating → {completed | failed}

Algorithm:
    1. Chunks are partitioned into batches of ``batch_size``; every chunk
       starts ``pending`` when the session is created.
    2. Before each batch: honor pause/abort; for every batch after the
       first, count down the cooldown one tick at a time, re-checking
       pause/abort on each tick.
    3. Mark the batch ``generating`` and dispatch all of its chunks
       concurrently; wait for every outcome (settle-all).
    4. Route each outcome by chunk index and move the chunk to its
       terminal state exactly once; update BatchProgress.

Failure Semantics:
    - A dispatcher error for one chunk fails only that chunk.
    - A call exceeding ``call_timeout_s`` fails that chunk.
    - An exception escaping the batch dispatch as a whole fails every
      chunk in that batch; the run continues with the next batch.

Pause is cooperative: an in-flight batch is allowed to settle. Resuming
continues from the next undispatched batch.

Example:
    >>> session = GenerationSession.create(text, provider_config, voice="Wise_Woman")
    >>> orchestrator = BatchOrchestrator(ServiceDispatcher(service), BatchingConfig())
    >>> progress = asyncio.run(orchestrator.run(session))
"""
from __future__ import annotations

import asyncio
import inspect
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tts_batch.core.config import BatchingConfig
from tts_batch.core.logging import (
    debug,
    fail,
    get_logger,
    info,
    set_request_id,
    success,
    verbose,
    warn,
)
from tts_batch.core.metrics import metrics
from tts_batch.services.validators import ValidationError
from tts_batch.tts.chunker import TextChunk, chunk_text
from tts_batch.tts.provider import ProviderConfig

_LOG = get_logger("tts-batch.orchestrator")


# =============================================================================
# States
# =============================================================================

class ChunkStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABORTED = "aborted"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class AudioChunk:
    """
    Per-chunk generation state.

    Attributes:
        chunk_index: Index of the source TextChunk.
        text: Source chunk text.
        status: Current ChunkStatus.
        audio_payload: Base64 audio, set only when completed.
        duration: Estimated seconds.
        filename: Download filename.
        size: Audio byte count.
        error: Failure message, set only when failed.
    """
    chunk_index: int
    text: str
    status: ChunkStatus = ChunkStatus.PENDING
    audio_payload: str = ""
    duration: int = 0
    filename: str = ""
    size: int = 0
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.status in (ChunkStatus.COMPLETED, ChunkStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class BatchProgress:
    """
    Aggregate counters for one run.

    ``current_batch`` is 1-based (0 before the first dispatch).
    """
    total_batches: int
    total_chunks: int
    completed_batches: int = 0
    current_batch: int = 0
    completed_chunks: int = 0
    failed_chunks: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ChunkOutcome:
    """
    What a dispatcher reports for one chunk.

    Attributes:
        chunk_index: Routes the outcome back to its chunk.
        success: Whether audio was produced.
        audio_payload: Base64 audio on success.
        duration: Estimated seconds on success.
        filename: Download filename on success.
        size: Audio byte count on success.
        error: Message on failure.
    """
    chunk_index: int
    success: bool
    audio_payload: str = ""
    duration: int = 0
    filename: str = ""
    size: int = 0
    error: Optional[str] = None

    @classmethod
    def failure(cls, chunk_index: int, error: str) -> "ChunkOutcome":
        return cls(chunk_index=chunk_index, success=False, error=error)

    @classmethod
    def from_response(cls, chunk_index: int, body: Dict[str, Any]) -> "ChunkOutcome":
        """Build from a synthesis endpoint JSON body."""
        if not body.get("success"):
            return cls.failure(chunk_index, str(body.get("error") or "Synthesis failed"))
        payload = body.get("audioData") or ""
        if not payload:
            url = body.get("audioUrl") or ""
            payload = url.split(",", 1)[1] if url.startswith("data:") and "," in url else ""
        if not payload:
            return cls.failure(chunk_index, "Response contained no audio")
        return cls(
            chunk_index=chunk_index,
            success=True,
            audio_payload=payload,
            duration=int(body.get("duration") or 0),
            filename=str(body.get("filename") or f"chunk{chunk_index}.mp3"),
            size=int(body.get("size") or 0),
        )


# Dispatcher: (session, chunk) -> outcome
Dispatch = Callable[["GenerationSession", TextChunk], Awaitable[ChunkOutcome]]

# Listener: (event name, session) -> None or awaitable
Listener = Callable[[str, "GenerationSession"], Any]


# =============================================================================
# Session
# =============================================================================

class GenerationSession:
    """
    All mutable state of one generation run.

    The orchestrator is the only writer of statuses and counters; callers
    interact through pause(), resume() and abort(), which only set flags
    the orchestrator polls at its checkpoints.

    Attributes:
        session_id: Correlation id used in log lines.
        provider_config: Provider used for every chunk.
        voice: Vendor voice id.
        model: Model override, if any.
        user_id: Requesting user.
        chunks: Ordered source chunks.
        audio_chunks: Per-chunk state keyed by chunk index.
        batches: Chunks grouped for dispatch.
        progress: Aggregate counters.
        state: Current RunState.
        next_batch: Index of the next batch to dispatch.
        cooldown_remaining: Seconds left in the current cooldown.
        message: Latest human-readable status line.
    """

    def __init__(
        self,
        chunks: List[TextChunk],
        provider_config: ProviderConfig,
        voice: str,
        model: Optional[str] = None,
        user_id: str = "unknown_user",
        batch_size: int = 5,
        session_id: Optional[str] = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.provider_config = provider_config
        self.voice = voice
        self.model = model
        self.user_id = user_id
        self.batch_size = batch_size

        self.chunks: List[TextChunk] = sorted(chunks, key=lambda c: c.index)
        self.audio_chunks: Dict[int, AudioChunk] = {
            c.index: AudioChunk(chunk_index=c.index, text=c.text) for c in self.chunks
        }
        self.batches: List[List[TextChunk]] = [
            self.chunks[i:i + batch_size] for i in range(0, len(self.chunks), batch_size)
        ]
        self.progress = BatchProgress(total_batches=len(self.batches), total_chunks=len(self.chunks))

        self.state = RunState.IDLE
        self.next_batch = 0
        self.cooldown_remaining = 0.0
        self.message = ""
        self._pause_requested = False
        self._abort_requested = False
        self._running = False

    @classmethod
    def create(
        cls,
        text: str,
        provider_config: ProviderConfig,
        voice: str,
        model: Optional[str] = None,
        user_id: str = "unknown_user",
        batch_size: int = 5,
    ) -> "GenerationSession":
        """
        Chunk ``text`` with the provider's limit and build a session.

        Raises:
            ValidationError: Blank text or empty voice.
        """
        if not text or not text.strip():
            raise ValidationError("Text is required", "TEXT_REQUIRED", field="text")
        if not voice or not voice.strip():
            raise ValidationError("Voice is required", "VOICE_REQUIRED", field="voice")

        result = chunk_text(text, provider_config.chunk_size)
        return cls(
            result.chunks,
            provider_config,
            voice=voice.strip(),
            model=model,
            user_id=user_id,
            batch_size=batch_size,
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        """Request a pause; honored before the next batch or on the next cooldown tick."""
        if self.is_finished:
            return
        self._pause_requested = True
        self.message = "Pausing after the current batch..."

    def resume(self) -> None:
        """
        Clear a pause request. If the run already stopped, call
        BatchOrchestrator.run() again to continue; a loop still waiting on
        its batch simply carries on.
        """
        self._pause_requested = False
        if self.state == RunState.PAUSED:
            self.message = "Resuming..."

    def abort(self) -> None:
        """Request termination; the run ends in ``aborted`` at the next checkpoint."""
        if self.is_finished:
            return
        self._abort_requested = True
        self.message = "Aborting after the current batch..."

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def pause_requested(self) -> bool:
        return self._pause_requested

    @property
    def abort_requested(self) -> bool:
        return self._abort_requested

    @property
    def is_running(self) -> bool:
        """A run() loop currently owns this session."""
        return self._running

    @property
    def is_finished(self) -> bool:
        return self.state in (RunState.COMPLETED, RunState.ABORTED)

    def ordered_audio_chunks(self) -> List[AudioChunk]:
        return [self.audio_chunks[i] for i in sorted(self.audio_chunks)]

    def completed_chunks(self) -> List[AudioChunk]:
        return [c for c in self.ordered_audio_chunks() if c.status == ChunkStatus.COMPLETED]

    def failed_chunks(self) -> List[AudioChunk]:
        return [c for c in self.ordered_audio_chunks() if c.status == ChunkStatus.FAILED]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "provider": self.provider_config.identifier,
            "state": self.state.value,
            "message": self.message,
            "cooldownRemaining": self.cooldown_remaining,
            "progress": self.progress.to_dict(),
            "chunks": [
                {"chunkIndex": c.chunk_index, "status": c.status.value, "error": c.error, "filename": c.filename}
                for c in self.ordered_audio_chunks()
            ],
        }


# =============================================================================
# Orchestrator
# =============================================================================

class BatchOrchestrator:
    """
    Runs a GenerationSession to completion, pause or abort.

    Args:
        dispatch: Coroutine function producing a ChunkOutcome per chunk.
        config: Batch size, cooldown, per-call timeout, tick length.
        sleep: Awaitable sleep used for cooldown ticks (injectable for tests).
        listener: Optional callback receiving lifecycle events.
    """

    def __init__(
        self,
        dispatch: Dispatch,
        config: Optional[BatchingConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        listener: Optional[Listener] = None,
    ):
        self._dispatch = dispatch
        self._config = config or BatchingConfig()
        self._sleep = sleep
        self._listener = listener

    @property
    def config(self) -> BatchingConfig:
        return self._config

    def new_session(
        self,
        text: str,
        provider_config: ProviderConfig,
        voice: str,
        model: Optional[str] = None,
        user_id: str = "unknown_user",
    ) -> GenerationSession:
        """GenerationSession.create with this orchestrator's batch size."""
        return GenerationSession.create(
            text, provider_config, voice, model=model, user_id=user_id,
            batch_size=self._config.batch_size,
        )

    async def run(self, session: GenerationSession) -> BatchProgress:
        """
        Process batches from ``session.next_batch`` onward.

        Returns when every batch has run (``completed``), a pause is
        honored (``paused``) or an abort is honored (``aborted``). Calling
        again after a pause continues with the next undispatched batch.

        A session is driven by one loop at a time: while another run() is
        in flight this returns the current progress without dispatching.
        """
        if session.is_finished:
            return session.progress
        if session.is_running:
            warn(_LOG, "run_already_active", next_batch=session.next_batch)
            return session.progress

        session._running = True
        try:
            return await self._run_loop(session)
        finally:
            session._running = False

    async def resume(self, session: GenerationSession) -> BatchProgress:
        """
        Clear the pause flag and continue the run.

        If the previous loop has not yet reached its pause checkpoint it
        keeps going on its own, and this returns immediately.
        """
        session.resume()
        return await self.run(session)

    async def _run_loop(self, session: GenerationSession) -> BatchProgress:
        set_request_id(session.session_id)
        session.state = RunState.RUNNING
        info(_LOG, "run_started", provider=session.provider_config.identifier,
             chunks=session.progress.total_chunks, batches=session.progress.total_batches,
             next_batch=session.next_batch)

        while session.next_batch < len(session.batches):
            batch_index = session.next_batch

            if await self._checkpoint(session):
                return session.progress

            if batch_index > 0 and self._config.cooldown_s > 0:
                if not await self._cooldown(session):
                    return session.progress

            await self._run_batch(session, batch_index)
            session.next_batch = batch_index + 1

        session.state = RunState.COMPLETED
        p = session.progress
        session.message = (
            f"Generation finished: {p.completed_chunks} completed, {p.failed_chunks} failed"
        )
        metrics.record_session(RunState.COMPLETED.value)
        success(_LOG, "run_completed", completed=p.completed_chunks, failed=p.failed_chunks, state="completed")
        await self._emit("completed", session)
        return session.progress

    # -------------------------------------------------------------------------
    # Checkpoints
    # -------------------------------------------------------------------------

    async def _checkpoint(self, session: GenerationSession) -> bool:
        """Honor abort/pause. Returns True when the run must stop."""
        if session.abort_requested:
            session.state = RunState.ABORTED
            session.cooldown_remaining = 0.0
            session.message = "Generation aborted"
            metrics.record_session(RunState.ABORTED.value)
            warn(_LOG, "run_aborted", next_batch=session.next_batch, state="aborted")
            await self._emit("aborted", session)
            return True
        if session.pause_requested:
            session.state = RunState.PAUSED
            session.cooldown_remaining = 0.0
            session.message = (
                f"Paused before batch {session.next_batch + 1} of {session.progress.total_batches}"
            )
            info(_LOG, "run_paused", next_batch=session.next_batch, state="paused")
            await self._emit("paused", session)
            return True
        return False

    async def _cooldown(self, session: GenerationSession) -> bool:
        """
        Count down the inter-batch cooldown.

        Returns False if the run stopped (pause/abort) during the wait.
        """
        remaining = float(self._config.cooldown_s)
        tick = float(self._config.tick_s)
        session.cooldown_remaining = remaining
        verbose(_LOG, "cooldown_started", seconds=remaining, next_batch=session.next_batch)

        while remaining > 0:
            if session.pause_requested or session.abort_requested:
                metrics.add_cooldown(self._config.cooldown_s - remaining)
                return not await self._checkpoint(session)
            session.message = f"Waiting {remaining:.0f}s before batch {session.next_batch + 1}..."
            await self._emit("cooldown", session)
            step = min(tick, remaining)
            await self._sleep(step)
            remaining = max(0.0, remaining - step)
            session.cooldown_remaining = remaining

        metrics.add_cooldown(self._config.cooldown_s)
        # Pause may have arrived during the last tick
        return not await self._checkpoint(session)

    # -------------------------------------------------------------------------
    # Batch execution
    # -------------------------------------------------------------------------

    async def _run_batch(self, session: GenerationSession, batch_index: int) -> None:
        progress = session.progress
        # Terminal statuses are one-way; a settled chunk is never dispatched again
        batch = [c for c in session.batches[batch_index] if not session.audio_chunks[c.index].terminal]
        if not batch:
            debug(_LOG, "batch_already_settled", batch=batch_index + 1)
            return
        progress.current_batch = batch_index + 1

        for chunk in batch:
            session.audio_chunks[chunk.index].status = ChunkStatus.GENERATING

        session.message = (
            f"Processing batch {batch_index + 1} of {progress.total_batches} ({len(batch)} chunks)"
        )
        info(_LOG, "batch_started", batch=batch_index + 1, of=progress.total_batches,
             chunks=[c.index for c in batch])
        await self._emit("batch_started", session)

        try:
            outcomes = await self._dispatch_batch(session, batch)
        except Exception as e:
            fail(_LOG, "batch_failed", batch=batch_index + 1, error=str(e))
            outcomes = [
                ChunkOutcome.failure(c.index, f"Batch {batch_index + 1} failed: {e}") for c in batch
            ]

        completed, failed = self._apply(session, batch, outcomes)
        progress.completed_batches += 1
        progress.completed_chunks += completed
        progress.failed_chunks += failed
        metrics.inc_batches()

        info(_LOG, "batch_completed", batch=batch_index + 1, completed=completed, failed=failed)
        await self._emit("batch_completed", session)

    async def _dispatch_batch(self, session: GenerationSession, batch: List[TextChunk]) -> List[ChunkOutcome]:
        """Dispatch every chunk at once and wait for all of them."""
        calls = []
        started = []
        try:
            for chunk in batch:
                started.append(self._dispatch(session, chunk))
                calls.append(self._guarded(chunk, started[-1]))
        except BaseException:
            # Nothing was scheduled; close every coroutine created so far
            for coro in calls + started:
                if inspect.iscoroutine(coro):
                    coro.close()
            raise

        results = await asyncio.gather(*calls, return_exceptions=True)

        outcomes = []
        for chunk, result in zip(batch, results):
            if isinstance(result, BaseException):
                outcomes.append(ChunkOutcome.failure(chunk.index, str(result) or type(result).__name__))
            else:
                outcomes.append(result)
        return outcomes

    async def _guarded(self, chunk: TextChunk, call: Awaitable[ChunkOutcome]) -> ChunkOutcome:
        """Bound one dispatch by the call timeout and turn errors into a failed outcome."""
        timeout = self._config.call_timeout_s
        try:
            if timeout and timeout > 0:
                outcome = await asyncio.wait_for(call, timeout)
            else:
                outcome = await call
        except asyncio.TimeoutError:
            return ChunkOutcome.failure(chunk.index, f"Chunk {chunk.index} timed out after {timeout:g} s")
        except Exception as e:
            return ChunkOutcome.failure(chunk.index, str(e) or type(e).__name__)

        if not isinstance(outcome, ChunkOutcome):
            return ChunkOutcome.failure(chunk.index, f"Dispatcher returned {type(outcome).__name__}")
        return outcome

    def _apply(
        self,
        session: GenerationSession,
        batch: List[TextChunk],
        outcomes: List[ChunkOutcome],
    ) -> tuple[int, int]:
        """Move chunks to terminal states by chunk index. Returns (completed, failed)."""
        completed = failed = 0
        batch_indexes = {c.index for c in batch}

        for outcome in outcomes:
            chunk = session.audio_chunks.get(outcome.chunk_index)
            if chunk is None or outcome.chunk_index not in batch_indexes:
                warn(_LOG, "outcome_unknown_chunk", chunk=outcome.chunk_index)
                continue
            if chunk.terminal:
                warn(_LOG, "outcome_duplicate", chunk=outcome.chunk_index, status=chunk.status.value)
                continue

            if outcome.success:
                chunk.status = ChunkStatus.COMPLETED
                chunk.audio_payload = outcome.audio_payload
                chunk.duration = outcome.duration
                chunk.filename = outcome.filename
                chunk.size = outcome.size
                completed += 1
                verbose(_LOG, "chunk_completed", chunk=chunk.chunk_index, status="completed")
            else:
                chunk.status = ChunkStatus.FAILED
                chunk.error = outcome.error or "Unknown error"
                failed += 1
                warn(_LOG, "chunk_failed", chunk=chunk.chunk_index, status="failed", error=chunk.error)

        # A chunk the dispatcher never reported on is still failed exactly once
        for index in sorted(batch_indexes):
            chunk = session.audio_chunks[index]
            if not chunk.terminal:
                chunk.status = ChunkStatus.FAILED
                chunk.error = "No result returned for chunk"
                failed += 1
                warn(_LOG, "chunk_missing_outcome", chunk=index, status="failed")

        return completed, failed

    async def _emit(self, event: str, session: GenerationSession) -> None:
        if self._listener is None:
            return
        try:
            result = self._listener(event, session)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            warn(_LOG, "listener_error", event=event, error=str(e))
        debug(_LOG, "event", name=event, state=session.state.value)

"""
Recognition orchestrator.

Coordinates one recognition at a time:

    Idle -> Validating -> Normalizing -> AwaitingModel -> Parsing -> Succeeded | Failed

The provider call runs in a worker thread and is raced against a deadline
timer with a first-to-complete wait. When the deadline wins, the provider call
is abandoned rather than cancelled: the worker thread finishes on its own and
its late result is logged and dropped. There are no automatic retries; a
failed run is terminal and a new one starts again from Idle.
"""

import asyncio
import concurrent.futures
import contextvars
import logging
import re
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Protocol

from google.genai import errors as genai_errors

from ..config.defaults import BUSY_TICK_SECONDS, DEFAULT_CONFIG
from ..core.entities import AnalysisResult, RawImage
from ..core.exceptions import (
    DecodeError, ErrorKind, MissingCredentialsError, RecognitionError,
    RecognitionInProgressError,
)
from ..core.logging_config import CorrelationContext
from .gemini_service import GeminiService
from .image_preprocessor import normalize
from .input_validator import validate
from .response_parser import parse

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    """Per-invocation recognition states."""
    IDLE = "Idle"
    VALIDATING = "Validating"
    NORMALIZING = "Normalizing"
    AWAITING_MODEL = "AwaitingModel"
    PARSING = "Parsing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.SUCCEEDED, WorkflowState.FAILED)

    @property
    def is_busy(self) -> bool:
        return not (self is WorkflowState.IDLE or self.is_terminal)


_TRANSITIONS: Dict[WorkflowState, FrozenSet[WorkflowState]] = {
    WorkflowState.IDLE: frozenset({WorkflowState.VALIDATING}),
    WorkflowState.VALIDATING: frozenset({WorkflowState.NORMALIZING, WorkflowState.FAILED}),
    WorkflowState.NORMALIZING: frozenset({WorkflowState.AWAITING_MODEL, WorkflowState.FAILED}),
    WorkflowState.AWAITING_MODEL: frozenset({WorkflowState.PARSING, WorkflowState.FAILED}),
    WorkflowState.PARSING: frozenset({WorkflowState.SUCCEEDED, WorkflowState.FAILED}),
    WorkflowState.SUCCEEDED: frozenset({WorkflowState.IDLE}),
    WorkflowState.FAILED: frozenset({WorkflowState.IDLE}),
}

_AUTH_HINTS = re.compile(
    r"api[_ ]?key|credential|unauthenticated|unauthori[sz]ed|permission[_ ]denied",
    re.IGNORECASE,
)


class RecognitionListener(Protocol):
    """Presentation-layer callbacks for one submission."""

    def on_state_change(self, state: WorkflowState) -> None: ...

    def on_busy(self, elapsed_seconds: float) -> None: ...

    def on_result(self, result: AnalysisResult) -> None: ...

    def on_error(self, error: RecognitionError) -> None: ...


class NullListener:
    """Listener that ignores every notification; subclass and override as needed."""

    def on_state_change(self, state: WorkflowState) -> None:
        pass

    def on_busy(self, elapsed_seconds: float) -> None:
        pass

    def on_result(self, result: AnalysisResult) -> None:
        pass

    def on_error(self, error: RecognitionError) -> None:
        pass


@dataclass
class RecognitionConfig:
    """Configuration for recognition orchestration."""
    timeout_seconds: float = float(DEFAULT_CONFIG["gemini_timeout"])
    busy_tick_seconds: float = BUSY_TICK_SECONDS
    max_workers: int = 2


def classify_provider_error(error: BaseException) -> RecognitionError:
    """Map a provider failure onto AuthFailure or ServiceFailure.

    The raw error text goes to ``detail`` only; the user-facing message is
    always the generic one for the kind.
    """
    detail = f"{type(error).__name__}: {error}"

    if isinstance(error, MissingCredentialsError):
        return RecognitionError(ErrorKind.AUTH_FAILURE, detail=detail)
    if isinstance(error, genai_errors.APIError) and error.code in (401, 403):
        return RecognitionError(ErrorKind.AUTH_FAILURE, detail=detail)
    if _AUTH_HINTS.search(str(error)):
        return RecognitionError(ErrorKind.AUTH_FAILURE, detail=detail)
    return RecognitionError(ErrorKind.SERVICE_FAILURE, detail=detail)


def _log_abandoned(future: concurrent.futures.Future) -> None:
    """Observe the outcome of a provider call that lost the race, then drop it."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.info(f"Abandoned provider call failed after timeout: {error}")
    else:
        logger.info("Discarded provider reply that arrived after timeout")


class RecognitionOrchestrator:
    """
    Runs the recognition pipeline for one image at a time.

    The orchestrator owns the in-flight state: a second submission while a
    run is in progress is rejected with :class:`RecognitionInProgressError`.
    """

    def __init__(self,
                 gemini_service: GeminiService,
                 config: Optional[RecognitionConfig] = None,
                 listener: Optional[RecognitionListener] = None):
        """
        Initialize the orchestrator.

        Args:
            gemini_service: Provider client used for the model call
            config: Timeout and worker configuration
            listener: Default listener for state and busy notifications
        """
        self.gemini_service = gemini_service
        self.config = config or RecognitionConfig()
        self.listener: RecognitionListener = listener or NullListener()

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="digitscan-provider",
        )
        self._state = WorkflowState.IDLE
        self._state_lock = threading.Lock()

        logger.debug(f"RecognitionOrchestrator initialized with config: {asdict(self.config)}")

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state.is_busy

    def _begin(self, listener: RecognitionListener) -> None:
        with self._state_lock:
            if self._state.is_busy:
                raise RecognitionInProgressError(
                    f"A recognition is already in progress (state={self._state.value})")
            if self._state.is_terminal:
                self._state = WorkflowState.IDLE
            self._state = WorkflowState.VALIDATING
        self._notify(listener.on_state_change, WorkflowState.VALIDATING)

    def _transition(self, new_state: WorkflowState, listener: RecognitionListener) -> None:
        with self._state_lock:
            if new_state not in _TRANSITIONS[self._state]:
                raise RuntimeError(f"Illegal transition {self._state.value} -> {new_state.value}")
            logger.debug(f"State {self._state.value} -> {new_state.value}")
            self._state = new_state
        self._notify(listener.on_state_change, new_state)

    def _notify(self, callback, *args) -> None:
        """Invoke a listener callback; a failing listener must not break the pipeline."""
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Listener callback {getattr(callback, '__name__', callback)} failed")

    async def recognize(self, file: RawImage,
                        listener: Optional[RecognitionListener] = None) -> AnalysisResult:
        """
        Run the full pipeline for one file.

        Args:
            file: The raw user-supplied image
            listener: Receives state changes and busy ticks (defaults to self.listener)

        Returns:
            AnalysisResult: Parsed result; ``unknown`` when no digit was recognized

        Raises:
            RecognitionError: On validation, decode, timeout or provider failure
            RecognitionInProgressError: If another run is in progress
        """
        listener = listener or self.listener
        self._begin(listener)

        with CorrelationContext():
            started = time.monotonic()
            try:
                result = await self._run(file, listener, started)
            except RecognitionError as e:
                logger.error(f"Recognition failed: kind={e.kind.value} detail={e.detail or e.message}")
                self._transition(WorkflowState.FAILED, listener)
                raise
            except asyncio.CancelledError:
                logger.warning("Recognition cancelled by caller")
                self._transition(WorkflowState.FAILED, listener)
                raise
            except Exception as e:
                logger.exception("Unexpected error during recognition")
                self._transition(WorkflowState.FAILED, listener)
                raise RecognitionError(ErrorKind.SERVICE_FAILURE,
                                       detail=f"{type(e).__name__}: {e}") from e

            self._transition(WorkflowState.SUCCEEDED, listener)
            logger.info(f"Recognized '{result.identified_number}' ({result.classification.value}) "
                        f"in {(time.monotonic() - started) * 1000:.0f}ms")
            return result

    async def _run(self, file: RawImage, listener: RecognitionListener,
                   started: float) -> AnalysisResult:
        logger.info(f"Recognition started for {file.filename or 'upload'} "
                    f"({file.mime_type}, {file.size} bytes)")

        validation_error = validate(file)
        if validation_error is not None:
            raise RecognitionError.from_validation(validation_error)

        self._transition(WorkflowState.NORMALIZING, listener)
        try:
            image = normalize(file)
        except DecodeError as e:
            raise RecognitionError(ErrorKind.PREPROCESSING_FAILED, detail=str(e)) from e
        request = self.gemini_service.build_request(image)

        self._transition(WorkflowState.AWAITING_MODEL, listener)
        ticker = asyncio.ensure_future(self._report_busy(listener, started))
        try:
            raw_text = await self._race_provider(request)
            self._transition(WorkflowState.PARSING, listener)
            return parse(raw_text)
        finally:
            ticker.cancel()

    async def _report_busy(self, listener: RecognitionListener, started: float) -> None:
        while True:
            self._notify(listener.on_busy, time.monotonic() - started)
            await asyncio.sleep(self.config.busy_tick_seconds)

    async def _race_provider(self, request) -> str:
        """Race the provider call against the deadline; first to settle wins."""
        context = contextvars.copy_context()
        provider_call = self._executor.submit(
            context.run, self.gemini_service.generate_digits, request)
        response = asyncio.wrap_future(provider_call)
        deadline = asyncio.ensure_future(asyncio.sleep(self.config.timeout_seconds))

        try:
            done, _ = await asyncio.wait({response, deadline},
                                         return_when=asyncio.FIRST_COMPLETED)
        finally:
            deadline.cancel()
            if not response.done():
                # Only the asyncio wrapper is dropped; the worker thread runs to completion.
                response.cancel()
                provider_call.add_done_callback(_log_abandoned)

        if response not in done:
            raise RecognitionError(
                ErrorKind.TIMEOUT,
                detail=f"No response from provider after {self.config.timeout_seconds}s")

        try:
            return response.result()
        except Exception as e:
            error = classify_provider_error(e)
            logger.error(f"Provider call failed ({error.kind.value}): {error.detail}")
            raise error from e

    async def submit(self, file: RawImage,
                     listener: Optional[RecognitionListener] = None) -> Optional[AnalysisResult]:
        """
        Inbound entry point for a file source.

        Calls exactly one of ``listener.on_result`` or ``listener.on_error``.

        Returns:
            The result on success, None on a pipeline failure

        Raises:
            RecognitionInProgressError: If another run is in progress
        """
        listener = listener or self.listener
        try:
            result = await self.recognize(file, listener)
        except RecognitionError as e:
            self._notify(listener.on_error, e)
            return None
        self._notify(listener.on_result, result)
        return result

    def recognize_sync(self, file: RawImage,
                       listener: Optional[RecognitionListener] = None) -> AnalysisResult:
        """Blocking wrapper around :meth:`recognize` for synchronous callers."""
        return asyncio.run(self.recognize(file, listener))

    def close(self) -> None:
        """Release the worker pool without waiting for abandoned provider calls."""
        self._executor.shutdown(wait=False)

"""Processing hosts that run a DocumentProcessor off the caller's thread.

``ProcessingHost`` runs the pipeline in a spawned child process. Requests go
down one queue; results, errors and progress events come back on another.
Nothing is shared between caller and child except those two queues.
``ThreadHost`` honours the same contract on a single worker thread and is
meant for in-process callers and tests.

Both hosts serialize calls: one extraction runs at a time per host. Callers
wanting parallel throughput create several hosts. There is no cancellation;
a submitted call runs to completion. If the child dies, its pending calls
fail and the next submitted call spawns a fresh child.

Scripts using ``ProcessingHost`` must guard their entry point with
``if __name__ == "__main__":``, as required by the spawn start method.
"""

import contextvars
import multiprocessing
import queue
import threading
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Optional

from document_extractor.config import ExtractorConfig
from document_extractor.exceptions import DocumentExtractionError, rebuild_error
from document_extractor.logger import (
    current_log_level,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)
from document_extractor.models import ExtractionOptions, ProgressCallback
from document_extractor.processor import DocumentProcessor

logger = get_logger(__name__)

HOST_METHODS = frozenset(
    {
        "extract_text",
        "extract_text_from_pdf",
        "extract_text_with_ocr",
        "extract_text_from_docx",
        "extract_text_from_image",
        "detect_document_type",
        "cleanup",
    }
)

POLL_INTERVAL_SECONDS = 0.5
SHUTDOWN_TIMEOUT_SECONDS = 10.0


class BaseHost(ABC):
    """Asynchronous request/response channel to a DocumentProcessor."""

    @abstractmethod
    def submit(self, method: str, *args: Any, on_progress: Optional[ProgressCallback] = None) -> Future:
        """Queue a processor call and return a future for its result."""

    @abstractmethod
    def close(self) -> None:
        """Release the recognition engine and stop the host."""

    @property
    @abstractmethod
    def is_running(self) -> bool: ...

    @staticmethod
    def _check_method(method: str) -> None:
        if method not in HOST_METHODS:
            raise ValueError(f"Unknown host method: {method}")


class ThreadHost(BaseHost):
    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        processor: Optional[DocumentProcessor] = None,
    ) -> None:
        self.processor = processor or DocumentProcessor(config)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="document-host")
        self._closed = False

    @property
    def is_running(self) -> bool:
        return not self._closed

    def submit(self, method: str, *args: Any, on_progress: Optional[ProgressCallback] = None) -> Future:
        self._check_method(method)
        if self._closed:
            raise DocumentExtractionError("Processing host is closed")
        handler = getattr(self.processor, method)
        # Carry the caller's request id into the worker thread
        context = contextvars.copy_context()
        return self._executor.submit(context.run, handler, *args, on_progress=on_progress)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self.processor.cleanup()
        logger.info("Thread host stopped")


@dataclass
class _PendingCall:
    future: Future
    on_progress: Optional[ProgressCallback]


class ProcessingHost(BaseHost):
    """Runs the pipeline in a separate process so a slow OCR pass never blocks the caller."""

    def __init__(self, config: Optional[ExtractorConfig] = None) -> None:
        self.config = config or ExtractorConfig()
        self._context = multiprocessing.get_context("spawn")
        self._process = None
        self._requests = None
        self._responses = None
        self._listener: Optional[threading.Thread] = None
        self._pending: dict[str, _PendingCall] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.is_alive() and not self._closed

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def start(self) -> None:
        """Spawn the child process, replacing one that has died."""
        with self._lock:
            if self._closed:
                raise DocumentExtractionError("Processing host is closed")
            process = self._process
        if process is not None and not process.is_alive():
            self._discard_dead_process(process)

        with self._lock:
            if self._closed:
                raise DocumentExtractionError("Processing host is closed")
            if self._process is not None:
                return

            self._requests = self._context.Queue()
            self._responses = self._context.Queue()
            self._process = self._context.Process(
                target=_host_main,
                args=(
                    self._requests,
                    self._responses,
                    self.config,
                    self.config.log_level or current_log_level(),
                ),
                name="document-host",
                daemon=True,
            )
            self._process.start()
            self._listener = threading.Thread(
                target=self._listen,
                args=(self._process, self._responses),
                name="document-host-listener",
                daemon=True,
            )
            self._listener.start()

        logger.info("Processing host started", extra_data={"pid": self._process.pid})

    def _discard_dead_process(self, process) -> None:
        with self._lock:
            if self._process is not process:
                return
            listener, requests, responses = self._listener, self._requests, self._responses
            self._process = self._listener = self._requests = self._responses = None

        logger.warning(
            "Processing host exited, restarting",
            extra_data={"pid": process.pid, "exit_code": process.exitcode},
        )
        listener.join(SHUTDOWN_TIMEOUT_SECONDS)
        self._fail_pending(
            DocumentExtractionError(
                f"Processing host exited unexpectedly (exit code {process.exitcode})"
            )
        )
        requests.close()
        responses.close()

    def submit(self, method: str, *args: Any, on_progress: Optional[ProgressCallback] = None) -> Future:
        self._check_method(method)
        self.start()
        if not self._process.is_alive():
            raise DocumentExtractionError(
                f"Processing host is not running (exit code {self._process.exitcode})"
            )

        # Callbacks stay caller-side; progress arrives over the response queue
        args = tuple(
            replace(arg, on_progress=None) if isinstance(arg, ExtractionOptions) else arg
            for arg in args
        )
        request_id = uuid.uuid4().hex
        future: Future = Future()
        with self._lock:
            self._pending[request_id] = _PendingCall(future, on_progress)
        self._requests.put((request_id, get_request_id(), method, args))

        logger.debug(
            "Submitted host request",
            extra_data={"host_request_id": request_id, "method": method},
        )
        return future

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            process = self._process

        if process is None:
            return

        self._requests.put(None)
        self._listener.join(SHUTDOWN_TIMEOUT_SECONDS)
        process.join(SHUTDOWN_TIMEOUT_SECONDS)
        if process.is_alive():
            logger.warning(
                "Processing host did not stop in time, terminating",
                extra_data={"pid": process.pid},
            )
            process.terminate()
            process.join()

        self._fail_pending(DocumentExtractionError("Processing host closed before the call completed"))
        self._requests.close()
        self._responses.close()
        logger.info("Processing host stopped", extra_data={"exit_code": process.exitcode})

    def _listen(self, process, responses) -> None:
        while True:
            try:
                message = responses.get(timeout=POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if not process.is_alive():
                    logger.error(
                        "Processing host exited unexpectedly",
                        extra_data={"exit_code": process.exitcode},
                    )
                    self._fail_pending(
                        DocumentExtractionError(
                            f"Processing host exited unexpectedly (exit code {process.exitcode})"
                        )
                    )
                    return
                continue

            kind = message[0]
            if kind == "closed":
                return

            request_id = message[1]
            if kind == "progress":
                self._forward_progress(request_id, message[2], message[3])
                continue

            with self._lock:
                call = self._pending.pop(request_id, None)
            if call is None:
                continue
            if kind == "result":
                call.future.set_result(message[2])
            else:
                call.future.set_exception(rebuild_error(*message[2:]))

    def _forward_progress(self, request_id: str, percent: float, stage: str) -> None:
        with self._lock:
            call = self._pending.get(request_id)
        if call is None or call.on_progress is None:
            return
        try:
            call.on_progress(percent, stage)
        except Exception:
            logger.warning("Progress callback raised", exc_info=True)

    def _fail_pending(self, error: DocumentExtractionError) -> None:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for call in pending:
            if not call.future.done():
                call.future.set_exception(error)


def _host_main(requests, responses, config: ExtractorConfig, log_level: str) -> None:
    """Request loop run inside the spawned child process."""
    setup_logging(log_level)
    processor = DocumentProcessor(config)
    logger.info("Processing host ready")

    try:
        for request_id, caller_request_id, method, args in iter(requests.get, None):
            set_request_id(caller_request_id or request_id[:12])

            def report(percent: float, stage: str, _request_id: str = request_id) -> None:
                responses.put(("progress", _request_id, percent, stage))

            try:
                result = getattr(processor, method)(*args, on_progress=report)
            except DocumentExtractionError as exc:
                responses.put(("error", request_id, type(exc).__name__, str(exc), exc.stage))
            except Exception as exc:
                logger.error(
                    "Unexpected failure in processing host",
                    extra_data={"method": method, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                responses.put(
                    (
                        "error",
                        request_id,
                        DocumentExtractionError.__name__,
                        f"Unexpected failure in {method}: {exc}",
                        None,
                    )
                )
            else:
                responses.put(("result", request_id, result))
    finally:
        processor.cleanup()
        responses.put(("closed",))

"""Manual multipart upload orchestration.

The service drives one multipart session from open to a terminal state:

    OPEN -> (parts) -> COMMITTING -> COMMITTED
    OPEN | COMMITTING -> ABORTED

Open, part and commit calls go through ``_step`` which returns a
``StepResult`` instead of raising, so each failure path decides explicitly
whether the session must be aborted. Abort is issued at most once per
session; whatever it raises is attached to the primary error rather than
replacing it.
"""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import (
    ALL_COMPLETED,
    FIRST_COMPLETED,
    Future,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, BinaryIO, Callable, Generic, Iterable, Iterator, TypeVar, Union

from s3gateway.app.services.base import (
    BaseService,
    InvalidRequestError,
    PayloadTooLargeError,
    ServiceError,
)
from s3gateway.common.config import MIN_PART_SIZE_BYTES, Settings
from s3gateway.infra.observability.metrics import (
    MULTIPART_ABORTS,
    MULTIPART_PARTS,
    MULTIPART_UPLOADS,
)
from s3gateway.infra.storage.client import (
    CompletedPart,
    ObjectReference,
    StorageClient,
    StorageError,
)

logger = logging.getLogger("storage.multipart")

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000

T = TypeVar("T")
Payload = Union[bytes, bytearray, memoryview, BinaryIO]


class SessionState(str, Enum):
    OPEN = "OPEN"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.OPEN: frozenset({SessionState.COMMITTING, SessionState.ABORTED}),
    SessionState.COMMITTING: frozenset({SessionState.COMMITTED, SessionState.ABORTED}),
    SessionState.COMMITTED: frozenset(),
    SessionState.ABORTED: frozenset(),
}


class InvalidUploadError(InvalidRequestError):
    """Raised when an upload request is rejected before a session is opened."""


class EmptyPayloadError(InvalidUploadError):
    """Raised for zero-byte payloads; use a single-shot upload instead."""


class InvalidSessionTransition(ServiceError):
    """Raised when a session is driven out of its state machine."""


class MultipartUploadError(ServiceError):
    """Base class for backend failures during a multipart upload."""

    error_code = "multipart_upload_failed"

    def __init__(
        self,
        message: str,
        *,
        container: str,
        key: str,
        session_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.container = container
        self.key = key
        self.session_id = session_id
        self.cause = cause
        self.abort_error: AbortError | None = None

    def context(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "message": self.message,
            "container": self.container,
            "key": self.key,
            "session_id": self.session_id,
        }
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        if self.abort_error is not None:
            payload["abort_error"] = str(self.abort_error.cause or self.abort_error)
        return payload


class SessionOpenError(MultipartUploadError):
    """The backend refused to start a session. No cleanup is required."""

    error_code = "session_open_failed"


class PartUploadError(MultipartUploadError):
    """A part failed to upload; the session has been aborted."""

    error_code = "part_upload_failed"

    def __init__(self, message: str, *, part_number: int, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.part_number = part_number

    def context(self) -> dict[str, Any]:
        payload = super().context()
        payload["part_number"] = self.part_number
        return payload


class CommitError(MultipartUploadError):
    """The backend rejected the final assembly; the session has been aborted."""

    error_code = "commit_failed"


class AbortError(MultipartUploadError):
    """Cleanup failed. Only ever reported alongside a primary error."""

    error_code = "abort_failed"


@dataclass(frozen=True, slots=True)
class PartDescriptor:
    """One contiguous byte range of the source payload."""

    part_number: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True, slots=True)
class StepResult(Generic[T]):
    """Outcome of a single backend call."""

    value: T | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadSession:
    """State of one in-flight multipart write, local to a single upload call."""

    session_id: str
    container: str
    key: str
    state: SessionState = SessionState.OPEN
    completed_parts: list[CompletedPart] = field(default_factory=list)
    bytes_uploaded: int = 0

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidSessionTransition(
                f"Cannot move session {self.session_id} from {self.state.value} "
                f"to {target.value}"
            )
        self.state = target

    def record_part(self, part: CompletedPart, length: int) -> None:
        if self.state is not SessionState.OPEN:
            raise InvalidSessionTransition(
                f"Cannot record part {part.part_number} on a {self.state.value} session"
            )
        self.completed_parts.append(part)
        self.bytes_uploaded += length

    def ordered_parts(self) -> list[CompletedPart]:
        return sorted(self.completed_parts, key=lambda p: p.part_number)

    def context(self) -> dict[str, Any]:
        return {
            "container": self.container,
            "key": self.key,
            "session_id": self.session_id,
            "state": self.state.value,
            "parts": len(self.completed_parts),
        }


def plan_parts(total_size: int, part_size: int) -> list[PartDescriptor]:
    """Split ``total_size`` bytes into contiguous parts of ``part_size``.

    The last part carries the remainder and may be shorter. An empty payload
    yields no parts.
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    return [
        PartDescriptor(
            part_number=index,
            offset=offset,
            length=min(part_size, total_size - offset),
        )
        for index, offset in enumerate(range(0, max(total_size, 0), part_size), start=1)
    ]


def byte_view(payload: bytes | bytearray | memoryview) -> memoryview:
    """Return a flat, one-byte-per-item view of a buffer.

    Views over typed arrays count items, not bytes; part offsets are bytes.
    """
    view = memoryview(payload)
    if not view.c_contiguous:
        view = memoryview(view.tobytes())
    return view.cast("B")


def iter_parts(
    payload: bytes | bytearray | memoryview, part_size: int
) -> Iterator[tuple[PartDescriptor, bytes]]:
    view = byte_view(payload)
    for part in plan_parts(len(view), part_size):
        yield part, bytes(view[part.offset : part.end])


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    buffer = bytearray()
    while len(buffer) < size:
        chunk = stream.read(size - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


def read_parts(stream: BinaryIO, part_size: int) -> Iterator[tuple[PartDescriptor, bytes]]:
    """Lazily read ``part_size`` chunks from a binary stream."""
    offset = 0
    for part_number in itertools.count(1):
        chunk = _read_exact(stream, part_size)
        if not chunk:
            return
        yield PartDescriptor(part_number, offset, len(chunk)), chunk
        offset += len(chunk)
        if len(chunk) < part_size:
            return


def _unfinished_outcome(exc: BaseException) -> str:
    """Metric outcome for a session left open by a non-backend exception."""
    if isinstance(exc, InvalidRequestError):
        # a streaming source crossed the size or part limit
        return "rejected"
    if isinstance(exc, OSError):
        return "source_failed"
    if isinstance(exc, Exception):
        return "unexpected_error"
    return "interrupted"


class MultipartUploadService(BaseService):
    """Uploads a payload through a manual multipart session.

    Parts are uploaded sequentially by default. With ``concurrency > 1`` up to
    that many parts are in flight on a thread pool; part numbers are assigned
    before submission and the commit waits for every part.
    """

    def __init__(
        self,
        storage: StorageClient,
        *,
        settings: Settings | None = None,
        part_size: int | None = None,
        concurrency: int | None = None,
    ) -> None:
        super().__init__(storage, settings=settings)
        self._part_size = int(part_size or self.settings.STORAGE_PART_SIZE_BYTES)
        if self._part_size < MIN_PART_SIZE_BYTES:
            raise ValueError(
                f"part_size must be at least {MIN_PART_SIZE_BYTES} bytes"
            )
        self._concurrency = int(concurrency or self.settings.STORAGE_UPLOAD_CONCURRENCY)
        if self._concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @property
    def part_size(self) -> int:
        return self._part_size

    def upload(
        self,
        container: str,
        key: str,
        payload: Payload,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectReference:
        """Upload ``payload`` to ``container/key`` all-or-nothing.

        Raises:
            InvalidUploadError: The request was rejected before a session opened
                (EmptyPayloadError for zero bytes).
            SessionOpenError: The backend refused to open a session.
            PartUploadError: A part failed; the session was aborted.
            CommitError: The backend rejected the commit; the session was aborted.
        """
        container = self._ensure_bucket(container)
        key = self._ensure_key(key)
        chunks = self._prepare_chunks(payload)

        opened = self._step(
            self._storage.init_multipart_upload,
            bucket=container,
            object_key=key,
            content_type=content_type,
            metadata=metadata,
        )
        if not opened.ok:
            error = SessionOpenError(
                "Failed to open multipart upload session",
                container=container,
                key=key,
                cause=opened.error,
            )
            MULTIPART_UPLOADS.labels(error.error_code).inc()
            logger.warning(
                "multipart_open_failed container=%s key=%s error=%s",
                container,
                key,
                opened.error,
                extra={"extra": error.context()},
            )
            raise error from opened.error

        session = UploadSession(
            session_id=opened.value.upload_id, container=container, key=key
        )
        logger.info(
            "multipart_opened container=%s key=%s session_id=%s part_size=%s",
            container,
            key,
            session.session_id,
            self._part_size,
            extra={"extra": session.context()},
        )

        try:
            return self._drive(session, chunks)
        except BaseException as exc:
            # the source or the caller broke off while the session was still open
            if not session.is_terminal:
                outcome = _unfinished_outcome(exc)
                MULTIPART_UPLOADS.labels(outcome).inc()
                logger.warning(
                    "multipart_unfinished outcome=%s session_id=%s error=%r",
                    outcome,
                    session.session_id,
                    exc,
                    extra={"extra": session.context()},
                )
                self._abort(session, None)
            raise

    def _drive(
        self, session: UploadSession, chunks: Iterable[tuple[PartDescriptor, bytes]]
    ) -> ObjectReference:
        part_failure = self._upload_parts(session, chunks)
        if part_failure is not None:
            self._fail(session, part_failure)
            raise part_failure from part_failure.cause

        session.transition(SessionState.COMMITTING)
        parts = session.ordered_parts()
        committed = self._step(
            self._storage.complete_multipart_upload,
            bucket=session.container,
            object_key=session.key,
            upload_id=session.session_id,
            parts=parts,
        )
        if not committed.ok:
            error = CommitError(
                "Storage backend rejected multipart commit",
                container=session.container,
                key=session.key,
                session_id=session.session_id,
                cause=committed.error,
            )
            self._fail(session, error)
            raise error from committed.error

        session.transition(SessionState.COMMITTED)
        MULTIPART_UPLOADS.labels("committed").inc()
        logger.info(
            "multipart_committed container=%s key=%s session_id=%s parts=%s bytes=%s",
            session.container,
            session.key,
            session.session_id,
            len(parts),
            session.bytes_uploaded,
            extra={"extra": session.context()},
        )
        return replace(
            committed.value,
            size_bytes=session.bytes_uploaded,
            part_count=len(parts),
        )

    def _prepare_chunks(self, payload: Payload) -> Iterator[tuple[PartDescriptor, bytes]]:
        if isinstance(payload, (bytes, bytearray, memoryview)):
            payload = byte_view(payload)
            size = len(payload)
            if size == 0:
                raise EmptyPayloadError("payload is empty")
            self._ensure_size(size)
            part_count = len(plan_parts(size, self._part_size))
            if part_count > MAX_PART_NUMBER:
                raise InvalidUploadError(
                    f"payload needs {part_count} parts, more than {MAX_PART_NUMBER}"
                )
            return iter_parts(payload, self._part_size)

        if not callable(getattr(payload, "read", None)):
            raise TypeError("payload must be bytes-like or a binary stream")

        chunks = read_parts(payload, self._part_size)
        first = next(chunks, None)
        if first is None:
            raise EmptyPayloadError("payload is empty")
        return self._limited(itertools.chain([first], chunks))

    def _limited(
        self, chunks: Iterator[tuple[PartDescriptor, bytes]]
    ) -> Iterator[tuple[PartDescriptor, bytes]]:
        for part, body in chunks:
            if part.part_number > MAX_PART_NUMBER:
                raise InvalidUploadError(f"payload needs more than {MAX_PART_NUMBER} parts")
            self._ensure_size(part.end)
            yield part, body

    def _upload_parts(
        self, session: UploadSession, chunks: Iterable[tuple[PartDescriptor, bytes]]
    ) -> PartUploadError | None:
        if self._concurrency == 1:
            for part, body in chunks:
                result = self._upload_one(session, part, body)
                if not result.ok:
                    return self._part_error(session, part, result.error)
                session.record_part(result.value, part.length)
            return None
        return self._upload_parts_parallel(session, chunks)

    def _upload_parts_parallel(
        self, session: UploadSession, chunks: Iterable[tuple[PartDescriptor, bytes]]
    ) -> PartUploadError | None:
        pending: dict[Future, PartDescriptor] = {}
        failures: list[tuple[PartDescriptor, StorageError]] = []

        def collect(return_when: str) -> None:
            done, _ = wait(list(pending), return_when=return_when)
            for future in done:
                part = pending.pop(future)
                result = future.result()
                if result.ok:
                    session.record_part(result.value, part.length)
                else:
                    failures.append((part, result.error))

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="multipart-part"
        ) as executor:
            for part, body in chunks:
                while len(pending) >= self._concurrency and not failures:
                    collect(FIRST_COMPLETED)
                if failures:
                    break
                pending[executor.submit(self._upload_one, session, part, body)] = part
            if pending:
                collect(ALL_COMPLETED)

        if not failures:
            return None
        part, error = min(failures, key=lambda item: item[0].part_number)
        return self._part_error(session, part, error)

    def _upload_one(
        self, session: UploadSession, part: PartDescriptor, body: bytes
    ) -> StepResult[CompletedPart]:
        result = self._step(
            self._storage.upload_part,
            bucket=session.container,
            object_key=session.key,
            upload_id=session.session_id,
            part_number=part.part_number,
            body=body,
        )
        if not result.ok:
            return StepResult(error=result.error)
        MULTIPART_PARTS.inc()
        logger.debug(
            "multipart_part_uploaded session_id=%s part_number=%s length=%s",
            session.session_id,
            part.part_number,
            part.length,
        )
        return StepResult(value=CompletedPart(part_number=part.part_number, etag=result.value))

    def _part_error(
        self, session: UploadSession, part: PartDescriptor, cause: StorageError
    ) -> PartUploadError:
        return PartUploadError(
            f"Failed to upload part {part.part_number}",
            part_number=part.part_number,
            container=session.container,
            key=session.key,
            session_id=session.session_id,
            cause=cause,
        )

    def _fail(self, session: UploadSession, error: MultipartUploadError) -> None:
        MULTIPART_UPLOADS.labels(error.error_code).inc()
        logger.warning(
            "multipart_failed kind=%s session_id=%s error=%s",
            error.error_code,
            session.session_id,
            error.cause,
            extra={"extra": error.context()},
        )
        self._abort(session, error)

    def _abort(
        self, session: UploadSession, primary: MultipartUploadError | None
    ) -> None:
        # state flips first so a failing abort is never retried
        session.transition(SessionState.ABORTED)
        try:
            self._storage.abort_multipart_upload(
                bucket=session.container,
                object_key=session.key,
                upload_id=session.session_id,
            )
        except Exception as exc:
            # best effort: any failure here must not mask the primary error
            failure: Exception = exc
        else:
            MULTIPART_ABORTS.labels("acknowledged").inc()
            logger.info(
                "multipart_aborted session_id=%s",
                session.session_id,
                extra={"extra": session.context()},
            )
            return

        MULTIPART_ABORTS.labels("failed").inc()
        abort_error = AbortError(
            "Failed to abort multipart upload",
            container=session.container,
            key=session.key,
            session_id=session.session_id,
            cause=failure,
        )
        logger.error(
            "multipart_abort_failed session_id=%s error=%r",
            session.session_id,
            failure,
            extra={"extra": abort_error.context()},
        )
        if primary is not None:
            primary.abort_error = abort_error

    @staticmethod
    def _step(operation: Callable[..., T], **kwargs: Any) -> StepResult[T]:
        try:
            return StepResult(value=operation(**kwargs))
        except StorageError as exc:
            return StepResult(error=exc)

"""
Binary retrieval gateway.

Serves the bytes behind a Binary resource to callers presenting a
signed URL. Requests without a signature are rejected before anything
is read. Bytes are forwarded from the content store through a bounded
channel, so the payload is never held in memory and a slow reader
slows the content store down.

A content store that fails part way through, or delivers fewer bytes
than the Binary declares, surfaces as TruncatedContentError from the
byte iterator. By then the response headers have been sent, so the
HTTP layer can only abort the transfer.

Content longer than declared is cut at the declared size, so the
response never overruns its Content-Length, and is reported as
OversizedContentError.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import AsyncIterator

from carebase.core import outcome as outcomes
from carebase.core.models import Binary
from carebase.core.outcome import RepositoryResult, failure
from carebase.fhir.repo import Repository
from carebase.integrations.sentry import capture_exception
from carebase.storage.base import BinarySink, ContentStorage

logger = logging.getLogger(__name__)


class TruncatedContentError(Exception):
    """A binary stream ended before all of its content was delivered."""

    def __init__(self, binary_id: str, sent: int, expected: int | None):
        super().__init__(
            f"Binary/{binary_id}: delivered {sent} of {expected if expected is not None else '?'} bytes"
        )
        self.sent = sent
        self.expected = expected


class OversizedContentError(Exception):
    """The content store held more bytes than the Binary declares."""

    def __init__(self, binary_id: str, expected: int):
        super().__init__(f"Binary/{binary_id}: content exceeds declared size of {expected} bytes")
        self.expected = expected


# Marks the end of a channel
_EOF = object()


class ChannelSink(BinarySink):
    """
    A sink that hands chunks to a consumer through a bounded queue.

    write() blocks while the queue is full, which is how backpressure
    reaches the content store.
    """

    def __init__(self, maxsize: int = 8):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def write(self, chunk: bytes) -> None:
        if chunk:
            await self._queue.put(chunk)

    async def close(self) -> None:
        await self._queue.put(_EOF)

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is _EOF:
                return
            yield chunk


@dataclass
class BinaryDownload:
    """Headers and byte stream for a binary being served."""

    binary: Binary
    content_type: str
    size: int | None
    body: AsyncIterator[bytes]


class BinaryGateway:
    """Authorizes and streams binary content."""

    def __init__(self, repo: Repository, content: ContentStorage, queue_size: int = 8):
        self.repo = repo
        self.content = content
        self.queue_size = queue_size

    async def retrieve(
        self,
        id: str,
        version_id: str | None = None,
        signature: str | None = None,
    ) -> RepositoryResult:
        """
        Look up a binary and prepare its byte stream.

        Returns:
            RepositoryResult whose value is a BinaryDownload on success.
            Failures: Unauthorized (no signature), NotFound, Gone.
        """
        if not signature:
            logger.debug(f"Rejected unsigned request for Binary/{id}")
            return failure(outcomes.unauthorized("Missing signature"))

        if version_id:
            outcome, binary = await self.repo.read_version("Binary", id, version_id)
        else:
            outcome, binary = await self.repo.read_resource("Binary", id)
        if not outcome.ok:
            return failure(outcome)

        return RepositoryResult(
            outcomes.all_ok(),
            BinaryDownload(
                binary=binary,
                content_type=binary.content_type,
                size=binary.size,
                body=self._stream(binary),
            ),
        )

    async def _stream(self, binary: Binary) -> AsyncIterator[bytes]:
        sink = ChannelSink(self.queue_size)
        error: list[BaseException] = []

        async def produce() -> None:
            try:
                await self.content.read_binary(binary, sink)
            except Exception as e:
                error.append(e)
            await sink.close()

        producer = asyncio.create_task(produce())
        chunks = sink.chunks()
        sent = 0
        oversized = False
        try:
            async for chunk in chunks:
                # Never send more than the declared Content-Length
                if binary.size is not None and sent + len(chunk) > binary.size:
                    chunk = chunk[:binary.size - sent]
                    oversized = True
                if chunk:
                    sent += len(chunk)
                    yield chunk
                if oversized:
                    break
            if not oversized:
                await producer
        finally:
            await chunks.aclose()
            if not producer.done():
                producer.cancel()
                with suppress(asyncio.CancelledError):
                    await producer

        if oversized:
            logger.warning(f"Binary/{binary.id} stored more than its declared {binary.size} bytes")
            capture_exception(OversizedContentError(binary.id, binary.size), binary_id=binary.id)
            return

        if error or (binary.size is not None and sent < binary.size):
            truncated = TruncatedContentError(binary.id, sent, binary.size)
            if error:
                truncated.__cause__ = error[0]
            capture_exception(truncated, binary_id=binary.id)
            raise truncated

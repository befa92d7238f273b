"""Incremental reader for chunked, newline-delimited chat responses.

The backend streams one JSON record per line. Chunks of the byte stream do not
line up with records, and a multi-byte UTF-8 sequence may be split between two
chunks, so lines are cut on raw bytes and only decoded once complete. A line
that is not valid UTF-8 is reported like any other unparseable record.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Iterable, Optional

import httpx

from ..errors import Cancelled, RequestFailed, StreamParseWarning
from .types import StreamRecord

logger = logging.getLogger(__name__)

RecordParser = Callable[[str], Optional[StreamRecord]]
WarningHandler = Callable[[StreamParseWarning], None]


class LineBuffer:
    """Turns arbitrary byte chunks into complete, non-blank raw lines."""

    def __init__(self):
        self._buffer = b""

    def feed(self, chunk: bytes) -> list[bytes]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")
        return [line.strip() for line in lines if line.strip()]

    def flush(self) -> list[bytes]:
        tail, self._buffer = self._buffer.strip(), b""
        return [tail] if tail else []


class StreamingClient:
    """Consumes a streamed chat response and yields text fragments."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def stream(
        self,
        url: str,
        *,
        json: dict,
        parse_record: RecordParser,
        headers: Optional[dict[str, str]] = None,
        timeout=httpx.USE_CLIENT_DEFAULT,
        cancel_event: Optional[asyncio.Event] = None,
        on_warning: Optional[WarningHandler] = None,
    ) -> AsyncIterator[str]:
        """POST ``json`` to ``url`` and yield each content fragment.

        The response is held open only inside this generator; it is closed when
        the sequence finishes, raises, is cancelled, or is abandoned by the
        consumer (``aclose()``). ``timeout`` defaults to the client's own
        timeout; pass an explicit value to override it.

        Raises:
            RequestFailed: the backend answered with a non-2xx status.
            Cancelled: ``cancel_event`` was set while streaming.
        """
        async with self._client.stream(
            "POST", url, json=json, headers=headers, timeout=timeout
        ) as response:
            if not response.is_success:
                await response.aread()
                raise RequestFailed(
                    f"Local AI request failed: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                )

            buffer = LineBuffer()
            async for chunk in response.aiter_bytes():
                _check_cancelled(cancel_event)
                for record in self._parse_lines(buffer.feed(chunk), parse_record, on_warning):
                    _check_cancelled(cancel_event)
                    if record.content:
                        yield record.content
                    if record.done:
                        return

            for record in self._parse_lines(buffer.flush(), parse_record, on_warning):
                _check_cancelled(cancel_event)
                if record.content:
                    yield record.content
                if record.done:
                    return

    @staticmethod
    def _parse_lines(
        lines: Iterable[bytes],
        parse_record: RecordParser,
        on_warning: Optional[WarningHandler],
    ) -> Iterable[StreamRecord]:
        for raw in lines:
            try:
                record = parse_record(raw.decode("utf-8"))
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                # UnicodeDecodeError is a ValueError
                warning = StreamParseWarning(raw.decode("utf-8", "replace"), str(e))
                logger.warning("%s", warning)
                if on_warning is not None:
                    on_warning(warning)
                continue
            if record is not None:
                yield record


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled("Response generation aborted")

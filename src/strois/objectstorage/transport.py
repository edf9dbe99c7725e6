"""HTTP transport boundary.

The rest of the package only talks to the network through the
:class:`Transport` protocol: ``send(request) -> response``. The default
implementation, :class:`RequestsTransport`, uses a pooled
``requests.Session``; tests substitute an in-memory store.
"""

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterator, Mapping, Optional, Protocol, Union

import requests
from requests.structures import CaseInsensitiveDict

from strois.core import get_logger
from strois.core.exceptions import TransportError

logger = get_logger(__name__)

# Bounded buffer used whenever a body is copied between streams
COPY_BUFFER_SIZE = 64 * 1024

RequestBody = Union[bytes, BinaryIO, "SizedReader", None]


@dataclass(frozen=True)
class HttpRequest:
    """A request ready to go on the wire."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: RequestBody = None


class HttpResponse:
    """Status, headers and a readable body.

    The body is consumed at most once, either with :meth:`read`,
    :meth:`iter_chunks` or through :attr:`stream`. Close the response (or
    use it as a context manager) to release the connection.
    """

    def __init__(
        self,
        status: int,
        headers: Mapping[str, str],
        body: BinaryIO,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.status = status
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict(headers)
        self._body = body
        self._on_close = on_close

    @classmethod
    def from_bytes(
        cls, status: int, headers: Optional[Mapping[str, str]] = None, content: bytes = b""
    ) -> "HttpResponse":
        """Build a fully buffered response."""
        return cls(status, headers or {}, io.BytesIO(content))

    @property
    def stream(self) -> BinaryIO:
        """The body as a file-like object."""
        return self._body

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or the whole remaining body."""
        return self._body.read(size)

    def iter_chunks(self, chunk_size: int = COPY_BUFFER_SIZE) -> Iterator[bytes]:
        """Yield the body in chunks of at most ``chunk_size`` bytes."""
        while True:
            chunk = self._body.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self._body.close()
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "HttpResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Transport(Protocol):
    """Anything able to perform an HTTP exchange."""

    def send(self, request: HttpRequest, stream: bool = False) -> HttpResponse:
        """Send ``request``.

        Args:
            request: Request to send
            stream: When True the body is left on the wire and read lazily

        Raises:
            TransportError: If no response could be obtained
        """
        ...


class SizedReader:
    """File-like view of a reader that announces a fixed length.

    Streaming uploads need an explicit ``Content-Length``; wrapping the
    caller's reader lets the HTTP layer send it instead of falling back to
    chunked encoding, which S3 rejects for plain PUTs.
    """

    def __init__(self, reader: BinaryIO, length: int):
        self._reader = reader
        self._remaining = length
        self._length = length

    def __len__(self) -> int:
        return self._length

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._reader.read(size)
        self._remaining -= len(data)
        return data

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(COPY_BUFFER_SIZE)
            if not chunk:
                return
            yield chunk


class _ChunkStream(io.RawIOBase):
    """Raw stream over ``requests`` content chunks."""

    def __init__(self, chunks: Iterator[bytes]):
        self._chunks = chunks
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        try:
            while not self._pending:
                self._pending = next(self._chunks)
        except StopIteration:
            return 0
        except requests.RequestException as e:
            raise TransportError(f"Reading S3 response body failed: {e}") from e

        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


class RequestsTransport:
    """Transport backed by a ``requests.Session``."""

    def __init__(self, timeout: float, session: Optional[requests.Session] = None):
        """Initialize the transport.

        Args:
            timeout: Connect and read timeout applied to every HTTP call
            session: Session to reuse; a new one is created when omitted
        """
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, request: HttpRequest, stream: bool = False) -> HttpResponse:
        try:
            response = self._session.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                timeout=self.timeout,
                stream=stream,
            )
            if not stream:
                content = response.content
        except requests.Timeout as e:
            raise TransportError(
                f"{request.method} request timed out after {self.timeout}s: {e}"
            ) from e
        except requests.RequestException as e:
            raise TransportError(f"{request.method} request failed: {e}") from e

        logger.debug(
            "HTTP exchange completed",
            method=request.method,
            url=request.url,
            status=response.status_code,
            streamed=stream,
        )
        if stream:
            body = io.BufferedReader(
                _ChunkStream(response.iter_content(chunk_size=COPY_BUFFER_SIZE)),
                buffer_size=COPY_BUFFER_SIZE,
            )
            return HttpResponse(
                response.status_code, response.headers, body, on_close=response.close
            )

        return HttpResponse(
            response.status_code,
            response.headers,
            io.BytesIO(content),
            on_close=response.close,
        )

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

"""Vertex AI upstream client for Vertex Relay.

Opens a streaming POST against the streamRawPredict endpoint and exposes the
response body as newline-terminated lines.
"""

from typing import Iterable, Iterator

import requests

from utils import StreamInterrupted, UpstreamTransportError, create_contextual_logger

UPSTREAM_CONTENT_TYPE = "application/json; charset=utf-8"


def split_lines(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Re-frame arbitrary byte chunks into lines that keep their ``\\n``.

    A trailing fragment without a newline is yielded once the chunks run out.
    """
    pending = b""
    for chunk in chunks:
        if not chunk:
            continue
        pending += chunk
        while True:
            newline = pending.find(b"\n")
            if newline < 0:
                break
            yield pending[: newline + 1]
            pending = pending[newline + 1 :]
    if pending:
        yield pending


class UpstreamClient:
    """Sends relayed bodies to one model endpoint."""

    def __init__(self, url: str, connect_timeout: float = 10.0, read_timeout: float = 300.0) -> None:
        self.url = url
        self.timeout = (connect_timeout, read_timeout)
        self.logger = create_contextual_logger(__name__, service="upstream_client")

    def open_stream(self, body: bytes, access_token: str) -> requests.Response:
        """POST ``body`` and return the response with its body still unread.

        Raises:
            UpstreamTransportError: the request could not be sent or no
                response headers arrived within the timeouts.
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": UPSTREAM_CONTENT_TYPE,
        }
        try:
            response = requests.post(
                self.url,
                data=body,
                headers=headers,
                stream=True,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            self.logger.error("Upstream request failed", error=str(e))
            raise UpstreamTransportError(f"upstream request: {e}") from e

        self.logger.info("Upstream responded", status_code=response.status_code)
        return response

    def iter_lines(self, response: requests.Response) -> Iterator[bytes]:
        """Yield the response body line by line as it arrives.

        Raises:
            StreamInterrupted: reading from the upstream failed mid-body.
        """
        try:
            yield from split_lines(response.iter_content(chunk_size=None))
        except requests.exceptions.RequestException as e:
            raise StreamInterrupted(f"reading upstream response: {e}") from e

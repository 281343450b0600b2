"""
Simple ESPHome REST Client for Heatbooster

Minimal client for reading entity states, issuing set commands and
subscribing to the appliance's server-sent event stream.
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import requests

from .exceptions import ApplianceConnectionError, SensorError
from .models import Signal, parse_response

logger = logging.getLogger(__name__)

# The appliance sends an unchunked body, so larger reads block until filled
STREAM_CHUNK_SIZE = 1
LINE_END = re.compile(rb"\r\n|\r|\n")


@dataclass
class ServerSentEvent:
    """One dispatched event from the appliance's event stream."""

    event: str
    data: str
    id: str | None = None


class EventStream:
    """Open server-sent event stream.

    Iterating yields events until the appliance closes the connection.
    Transport errors, including the read timeout used for stall detection,
    surface as ApplianceConnectionError.
    """

    def __init__(self, response: requests.Response):
        self.response = response
        self._closed = False

    def __iter__(self) -> Iterator[ServerSentEvent]:
        event_type = "message"
        data_lines: list[str] = []
        last_id = None
        first_line = True

        try:
            for raw_line in self._iter_lines():
                line = raw_line.decode("utf-8", errors="replace")
                if first_line:
                    line = line.removeprefix("\ufeff")
                    first_line = False

                if line == "":
                    # Blank line dispatches the pending event
                    if data_lines or event_type != "message":
                        yield ServerSentEvent(event=event_type, data="\n".join(data_lines), id=last_id)
                    event_type = "message"
                    data_lines = []
                    continue

                if line.startswith(":"):
                    continue

                name, _, value = line.partition(":")
                if value.startswith(" "):
                    value = value[1:]

                if name == "event":
                    event_type = value or "message"
                elif name == "data":
                    data_lines.append(value)
                elif name == "id":
                    last_id = value
                # retry and unknown fields are ignored
        except requests.exceptions.RequestException as e:
            if self._closed:
                return
            raise ApplianceConnectionError(f"Event stream failed: {e}")

    def _iter_lines(self) -> Iterator[bytes]:
        """Split the raw body on CRLF, LF or CR, across read boundaries."""
        buffer = b""
        for chunk in self.response.iter_content(chunk_size=STREAM_CHUNK_SIZE):
            buffer += chunk

            while True:
                match = LINE_END.search(buffer)
                if match is None:
                    break
                # A trailing CR may be the first half of a CRLF
                if match.group() == b"\r" and match.end() == len(buffer):
                    break
                yield buffer[: match.start()]
                buffer = buffer[match.end() :]

        if buffer.endswith(b"\r"):
            yield buffer[:-1]
        # An unterminated trailing line is incomplete and dropped

    def close(self):
        """Close the underlying connection, unblocking any reader."""
        self._closed = True
        self.response.close()


class ApplianceClient:
    """Simple ESPHome web server API client."""

    def __init__(self, base_url: str, timeout: float = 5.0):
        """Initialize appliance client.

        Args:
            base_url: Appliance URL (e.g., "http://heizungsbooster.local")
            timeout: Timeout for individual REST requests in seconds
        """
        self.base_url = base_url.rstrip("/")
        # Create a session for connection pooling
        self.session = requests.Session()
        self.timeout = timeout

    def get_state(self, domain: str, object_id: str) -> dict[str, Any]:
        """Get the raw JSON state of an entity.

        Args:
            domain: Entity domain (select, number, sensor, text_sensor)
            object_id: ESPHome object id

        Returns:
            State dictionary with 'id' and 'state' and/or 'value'

        Raises:
            ApplianceConnectionError: If the request fails
            SensorError: If the body is not a JSON object
        """
        url = f"{self.base_url}/{domain}/{object_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ApplianceConnectionError(f"Failed to get state for {domain}/{object_id}: {e}")

        try:
            body = response.json()
        except ValueError as e:
            raise SensorError(f"Invalid JSON from {domain}/{object_id}: {e}")

        if not isinstance(body, dict):
            raise SensorError(f"Unexpected response from {domain}/{object_id}: {body!r}")
        return body

    def read_signal(self, signal: Signal) -> Any:
        """Read and parse the current value of a signal.

        Returns:
            Parsed value; NaN or None when the appliance reports no value
        """
        return parse_response(signal, self.get_state(signal.domain, signal.object_id))

    def set_option(self, signal: Signal, option: str) -> None:
        """Select an option on a select entity (e.g. the operating mode)."""
        self._post_set(signal, {"option": option})

    def set_value(self, signal: Signal, value: float) -> None:
        """Set the value of a number entity (e.g. the manual fan target)."""
        self._post_set(signal, {"value": value})

    def _post_set(self, signal: Signal, params: dict[str, Any]) -> None:
        url = f"{self.base_url}/{signal.path}/set"
        try:
            logger.debug(f"Calling {url} with params: {params}")
            response = self.session.post(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            logger.debug(f"Set {signal.key} {params} - Response: {response.status_code}")
        except requests.exceptions.RequestException as e:
            raise ApplianceConnectionError(f"Failed to set {signal.key}: {e}")

    def open_event_stream(self, read_timeout: float) -> EventStream:
        """Open the appliance's event stream.

        Returns once the response headers arrived, i.e. the stream is open.

        Args:
            read_timeout: Maximum silence on the stream before it counts as failed

        Raises:
            ApplianceConnectionError: If the stream cannot be opened
        """
        url = f"{self.base_url}/events"
        try:
            response = self.session.get(
                url,
                stream=True,
                timeout=(self.timeout, read_timeout),
                headers={"Accept": "text/event-stream"},
            )
        except requests.exceptions.RequestException as e:
            raise ApplianceConnectionError(f"Failed to open event stream: {e}")

        if not response.ok:
            response.close()
            raise ApplianceConnectionError(f"Event stream rejected: HTTP {response.status_code}")
        return EventStream(response)

    def close(self):
        self.session.close()

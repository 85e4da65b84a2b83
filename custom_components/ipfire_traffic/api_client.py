# custom_components/ipfire_traffic/api_client.py

import asyncio
import base64
import contextlib
import logging
import re
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import AsyncIterator, Callable, Optional

from homeassistant.util.ssl import get_default_context, get_default_no_verify_context

from .const import (
    AUTH_REQUIRED_MARKER,
    DEFAULT_TIMEOUT_SECONDS,
    RATE_UNAVAILABLE,
    RX_ELEMENT,
    SPEED_CGI_PATH,
    TX_ELEMENT,
)

_LOGGER = logging.getLogger(__name__)

_STATUS_LINE_RE = re.compile(r"^HTTP/\d\.\d\s+(\d{3})")
_COUNTER_RE = re.compile(r"[0-9]+")


class IPFireError(Exception):
    """Base class for IPFire client errors."""


class IPFireAuthenticationError(IPFireError):
    """The router answered with 401, the credentials are wrong."""


class IPFireConnectionError(IPFireError):
    """The router could not be reached or returned nothing."""


class IPFireResponseError(IPFireError):
    """The speed.cgi body is not the XML we expect."""


class FetchOutcome(StrEnum):
    """Outcome of a single request to speed.cgi."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    AUTH_FAILURE = "auth_failure"


@dataclass(frozen=True)
class FetchResult:
    outcome: FetchOutcome
    body: str = ""


@dataclass(frozen=True)
class TrafficCounters:
    """Cumulative counters reported by the router, in KB."""

    total_down_kb: int
    total_up_kb: int


@dataclass(frozen=True)
class TrafficRates:
    """Rates in KB per millisecond.

    has_rate is False when no rate could be computed, both rates are then
    RATE_UNAVAILABLE. A real rate can be -1.0 after a counter reset, so check
    has_rate rather than comparing against the sentinel.
    """

    download: float = RATE_UNAVAILABLE
    upload: float = RATE_UNAVAILABLE
    total_down_kb: Optional[int] = None
    total_up_kb: Optional[int] = None
    has_rate: bool = False

    @property
    def available(self) -> bool:
        return self.has_rate


@dataclass(frozen=True)
class SamplerState:
    """Baseline used for the next rate computation.

    Counters of zero mean that no sample has been recorded yet.
    """

    last_refresh: float
    last_total_down: int = 0
    last_total_up: int = 0


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def build_request(host: str, username: str, password: str) -> bytes:
    """Build the HTTP/1.0 request for speed.cgi with basic auth."""
    auth_string = f"{username}:{password}"
    encoded_auth = base64.b64encode(auth_string.encode()).decode("ascii")
    lines = [
        f"GET {SPEED_CGI_PATH} HTTP/1.0",
        f"HOST: {host}",
        f"Authorization: BASIC {encoded_auth}",
        "",
        "",
    ]
    return "\r\n".join(lines).encode()


def split_response(lines: list[str]) -> tuple[str, str]:
    """Split raw response lines into header and body on the first empty line.

    This is not an HTTP parser: Content-Length and chunked encoding are
    ignored. speed.cgi answers HTTP/1.0 with a short body and then closes
    the connection, which is all this needs to handle.
    """
    header: list[str] = []
    body: list[str] = []
    header_over = False

    for line in lines:
        if header_over:
            body.append(line)
        else:
            header.append(line)
            if not line:
                # first empty line separates header from body
                header_over = True

    return "\n".join(header), "\n".join(body)


def is_auth_failure(header: str) -> bool:
    if AUTH_REQUIRED_MARKER in header:
        return True
    match = _STATUS_LINE_RE.match(header)
    return match is not None and match.group(1) == "401"


def parse_speed_xml(body: str) -> TrafficCounters:
    """Read total received and transmitted KB from a speed.cgi XML body.

    Only the first <rxb> and the first <txb> elements are looked at; any
    other element is ignored.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as err:
        raise IPFireResponseError(f"Invalid XML from speed.cgi: {err}") from err

    return TrafficCounters(
        total_down_kb=_read_counter(root, RX_ELEMENT),
        total_up_kb=_read_counter(root, TX_ELEMENT),
    )


def _read_counter(root: ET.Element, tag: str) -> int:
    element = root if root.tag == tag else root.find(f".//{tag}")
    if element is None:
        raise IPFireResponseError(f"Element <{tag}> missing from speed.cgi response")

    text = (element.text or "").strip()
    # int() would also accept "+5", "1_000" or non-ASCII digits
    if not _COUNTER_RE.fullmatch(text):
        raise IPFireResponseError(f"Element <{tag}> is not a counter: {text!r}")
    return int(text, 10)


def compute_rates(
    state: SamplerState, counters: TrafficCounters, now: float
) -> tuple[TrafficRates, SamplerState]:
    """Derive rates from the baseline and a new sample.

    Returns the rates and the new baseline, which always holds the new
    sample. Rates are KB per millisecond of elapsed time and may be
    negative when the router counters were reset.
    """
    download = upload = RATE_UNAVAILABLE
    has_rate = False
    elapsed = now - state.last_refresh

    if state.last_total_down != 0 and state.last_total_up != 0 and elapsed != 0:
        has_rate = True
        download = (counters.total_down_kb - state.last_total_down) / elapsed
        upload = (counters.total_up_kb - state.last_total_up) / elapsed

    rates = TrafficRates(
        download=download,
        upload=upload,
        total_down_kb=counters.total_down_kb,
        total_up_kb=counters.total_up_kb,
        has_rate=has_rate,
    )
    new_state = replace(
        state,
        last_refresh=now,
        last_total_down=counters.total_down_kb,
        last_total_up=counters.total_up_kb,
    )
    return rates, new_state


class IPFireApiClient:
    """Client for the IPFire speed.cgi endpoint."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        verify_ssl: bool = True,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        time_source: Callable[[], float] = _monotonic_ms,
    ):
        """Initialize the client.

        verify_ssl=False accepts any certificate, including the self-signed
        one IPFire generates on install. It has to be asked for explicitly.
        """
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._verify_ssl = verify_ssl
        self._timeout = timeout
        self._time_source = time_source
        self._state = SamplerState(last_refresh=time_source())
        self._lock = asyncio.Lock()

    @property
    def verify_ssl(self) -> bool:
        return self._verify_ssl

    @property
    def state(self) -> SamplerState:
        return self._state

    def _ssl_context(self):
        if self._verify_ssl:
            return get_default_context()
        return get_default_no_verify_context()

    @contextlib.asynccontextmanager
    async def _open_stream(self) -> AsyncIterator[tuple[asyncio.StreamReader, asyncio.StreamWriter]]:
        reader, writer = await asyncio.open_connection(
            self._host, self._port, ssl=self._ssl_context()
        )
        try:
            yield reader, writer
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _read_lines(self, reader: asyncio.StreamReader) -> list[str]:
        lines = []
        while True:
            raw = await reader.readline()
            if not raw:
                break
            lines.append(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
        return lines

    async def _async_fetch(self) -> FetchResult:
        """Request speed.cgi once and classify the outcome."""
        _LOGGER.debug("Requesting %s from %s:%s", SPEED_CGI_PATH, self._host, self._port)
        try:
            async with asyncio.timeout(self._timeout):
                async with self._open_stream() as (reader, writer):
                    writer.write(build_request(self._host, self._username, self._password))
                    await writer.drain()
                    lines = await self._read_lines(reader)
        except (OSError, TimeoutError, ValueError, asyncio.IncompleteReadError) as err:
            _LOGGER.debug("Fetching speed.cgi from %s failed: %s", self._host, err)
            return FetchResult(FetchOutcome.TRANSIENT_FAILURE)

        header, body = split_response(lines)
        if is_auth_failure(header):
            _LOGGER.debug("speed.cgi on %s rejected the credentials", self._host)
            return FetchResult(FetchOutcome.AUTH_FAILURE)

        return FetchResult(FetchOutcome.SUCCESS, body)

    async def async_validate(self) -> TrafficCounters:
        """Fetch and parse speed.cgi once without touching the baseline."""
        result = await self._async_fetch()
        if result.outcome is FetchOutcome.AUTH_FAILURE:
            raise IPFireAuthenticationError(f"Authorization failed for {self._host}")
        if result.outcome is FetchOutcome.TRANSIENT_FAILURE or not result.body:
            raise IPFireConnectionError(f"No response from {self._host}:{self._port}")
        return parse_speed_xml(result.body)

    async def async_get_speed(self) -> TrafficRates:
        """Sample the router and return the current download and upload rates.

        Returns RATE_UNAVAILABLE for both rates on the first sample, and
        whenever this tick produced no usable sample. Raises
        IPFireAuthenticationError when the router answers 401.
        """
        async with self._lock:
            result = await self._async_fetch()

            if result.outcome is FetchOutcome.AUTH_FAILURE:
                raise IPFireAuthenticationError(
                    f"Authorization failed for {self._host}, check username and password"
                )
            if result.outcome is FetchOutcome.TRANSIENT_FAILURE or not result.body:
                return TrafficRates()

            try:
                counters = parse_speed_xml(result.body)
            except IPFireResponseError as err:
                _LOGGER.warning("Ignoring response from %s: %s", self._host, err)
                return TrafficRates()

            rates, self._state = compute_rates(self._state, counters, self._time_source())

        if rates.available and (rates.download < 0 or rates.upload < 0):
            _LOGGER.warning(
                "Counters on %s went backwards (router restarted?): down %s KB, up %s KB",
                self._host, counters.total_down_kb, counters.total_up_kb,
            )
        _LOGGER.debug("Sampled %s: %s", self._host, rates)
        return rates

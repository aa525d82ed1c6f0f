# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
beanstalkd Text Protocol Implementation.

Protocol Format:
    Every command is one ASCII line terminated by CRLF, fields separated by
    a single space. ``put`` is followed by the job body and another CRLF:

        put <pri> <delay> <ttr> <bytes>\\r\\n
        <body>\\r\\n

    Every reply starts with one status line. ``RESERVED`` and ``OK`` declare
    a byte count and are followed by that many bytes plus CRLF:

        RESERVED <id> <bytes>\\r\\n
        <body>\\r\\n

Error Replies:
    OUT_OF_MEMORY, INTERNAL_ERROR, DRAINING, BAD_FORMAT, UNKNOWN_COMMAND,
    NOT_FOUND, JOB_TOO_BIG, EXPECTED_CRLF, DEADLINE_SOON, TIMED_OUT,
    NOT_IGNORED. Each is the whole line, with no fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import (
    BadFormatError,
    DeadlineSoonError,
    DrainingError,
    ExpectedCrlfError,
    InternalError,
    JobTooBigError,
    NotFoundError,
    NotIgnoredError,
    OutOfMemoryError,
    ServerError,
    TimedOutError,
    UnexpectedResponseError,
    UnknownCommandError,
)

if TYPE_CHECKING:
    from typing import BinaryIO

# Protocol constants
CRLF: bytes = b"\r\n"
MAX_LINE_LENGTH: int = 64 * 1024
MAX_PRIORITY: int = 2**32 - 1
MAX_TUBE_NAME_LENGTH: int = 200

_TUBE_NAME = re.compile(rb"[A-Za-z0-9+/;.$_()][A-Za-z0-9\-+/;.$_()]*")
_NUMBER = re.compile(rb"[0-9]+")

# Checked in this order; a line matching one of these is never parsed further.
ERROR_RESPONSES: dict[bytes, type[ServerError]] = {
    exc.token + CRLF: exc
    for exc in (
        OutOfMemoryError,
        InternalError,
        DrainingError,
        BadFormatError,
        UnknownCommandError,
        NotFoundError,
        JobTooBigError,
        ExpectedCrlfError,
        DeadlineSoonError,
        TimedOutError,
        NotIgnoredError,
    )
}


class Verb(str, Enum):
    """Command verbs understood by the server."""

    PUT = "put"
    RESERVE = "reserve"
    RESERVE_WITH_TIMEOUT = "reserve-with-timeout"
    DELETE = "delete"
    RELEASE = "release"
    BURY = "bury"
    USE = "use"
    WATCH = "watch"
    IGNORE = "ignore"
    STATS = "stats"


class Status:
    """Success status tokens."""

    INSERTED = b"INSERTED"
    RESERVED = b"RESERVED"
    DELETED = b"DELETED"
    RELEASED = b"RELEASED"
    BURIED = b"BURIED"
    USING = b"USING"
    WATCHING = b"WATCHING"
    OK = b"OK"


@dataclass(frozen=True)
class Command:
    """A single outbound request: verb, arguments and optional body."""

    verb: Verb
    args: tuple[int | str, ...] = ()
    body: bytes | None = None

    def to_bytes(self) -> bytes:
        """Serialize the command line, followed by the body frame if any."""
        fields = [self.verb.value, *(str(arg) for arg in self.args)]
        data = " ".join(fields).encode("ascii") + CRLF
        if self.body is not None:
            data += self.body + CRLF
        return data


@dataclass(frozen=True)
class Response:
    """A parsed status line."""

    status: bytes
    fields: tuple[bytes, ...] = ()

    @classmethod
    def from_line(cls, line: bytes) -> Response:
        """Split a CRLF-terminated line into status and fields."""
        if not line.endswith(CRLF):
            raise UnexpectedResponseError(line, "a CRLF-terminated line")
        parts = line[: -len(CRLF)].split(b" ")
        return cls(status=parts[0], fields=tuple(parts[1:]))


# =============================================================================
# Command Encoder
# =============================================================================


def _check_int(name: str, value: int, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be at most {maximum}, got {value}")
    return value


def validate_tube_name(name: str) -> str:
    """
    Check that ``name`` is a legal tube name.

    Tube names are 1-200 bytes of letters, digits and ``-+/;.$_()``
    and may not start with a hyphen.

    Raises:
        ValueError: If the name is not legal.
    """
    if not isinstance(name, str):
        raise ValueError(f"Tube name must be a string, got {type(name).__name__}")
    try:
        raw = name.encode("ascii")
    except UnicodeEncodeError:
        raise ValueError(f"Tube name must be ASCII: {name!r}") from None
    if not raw or len(raw) > MAX_TUBE_NAME_LENGTH:
        raise ValueError(f"Tube name must be 1-{MAX_TUBE_NAME_LENGTH} bytes: {name!r}")
    if not _TUBE_NAME.fullmatch(raw):
        raise ValueError(f"Invalid tube name: {name!r}")
    return name


def encode_put(priority: int, delay: int, ttr: int, body: bytes) -> Command:
    """Build ``put <pri> <delay> <ttr> <bytes>`` followed by the body."""
    return Command(
        Verb.PUT,
        (
            _check_int("priority", priority, MAX_PRIORITY),
            _check_int("delay", delay),
            _check_int("ttr", ttr),
            len(body),
        ),
        body,
    )


def encode_reserve() -> Command:
    return Command(Verb.RESERVE)


def encode_reserve_with_timeout(seconds: int) -> Command:
    return Command(Verb.RESERVE_WITH_TIMEOUT, (_check_int("timeout", seconds),))


def encode_delete(job_id: int) -> Command:
    return Command(Verb.DELETE, (_check_int("job_id", job_id),))


def encode_release(job_id: int, priority: int, delay: int) -> Command:
    return Command(
        Verb.RELEASE,
        (
            _check_int("job_id", job_id),
            _check_int("priority", priority, MAX_PRIORITY),
            _check_int("delay", delay),
        ),
    )


def encode_bury(job_id: int, priority: int) -> Command:
    return Command(
        Verb.BURY,
        (_check_int("job_id", job_id), _check_int("priority", priority, MAX_PRIORITY)),
    )


def encode_use(tube: str) -> Command:
    return Command(Verb.USE, (validate_tube_name(tube),))


def encode_watch(tube: str) -> Command:
    return Command(Verb.WATCH, (validate_tube_name(tube),))


def encode_ignore(tube: str) -> Command:
    return Command(Verb.IGNORE, (validate_tube_name(tube),))


def encode_stats() -> Command:
    return Command(Verb.STATS)


# =============================================================================
# Line Reader
# =============================================================================


def read_line(reader: BinaryIO) -> bytes:
    """
    Read one reply line from a binary stream, one byte at a time.

    The terminator is kept in the returned bytes. Reading stops right after
    the newline so a following body read starts at the first body byte.

    Args:
        reader: Binary stream to read from.

    Returns:
        The line, including its trailing ``\\r\\n``.

    Raises:
        EOFError: If the stream ends before a newline.
        UnexpectedResponseError: If the line exceeds MAX_LINE_LENGTH.
    """
    line = bytearray()
    while True:
        char = reader.read(1)
        if not char:
            if not line:
                raise EOFError("Connection closed")
            raise EOFError(f"Incomplete line: {bytes(line)!r}")
        line += char
        if char == b"\n":
            return bytes(line)
        if len(line) > MAX_LINE_LENGTH:
            raise UnexpectedResponseError(
                bytes(line[:64]), f"a line under {MAX_LINE_LENGTH} bytes", desynchronized=True
            )


def read_body(reader: BinaryIO, length: int) -> bytes:
    """
    Read a length-prefixed body and its trailing CRLF.

    Exactly ``length + 2`` bytes are consumed whatever they contain.

    Args:
        reader: Binary stream to read from.
        length: Byte count declared by the status line.

    Returns:
        The body without the trailing CRLF.

    Raises:
        EOFError: If the stream ends before the full frame arrives.
        UnexpectedResponseError: If the frame does not end in CRLF.
    """
    expected = length + len(CRLF)
    data = bytearray()
    while len(data) < expected:
        chunk = reader.read(expected - len(data))
        if not chunk:
            raise EOFError(f"Incomplete body: got {len(data)} bytes, expected {expected}")
        data += chunk

    if data[length:] != CRLF:
        raise UnexpectedResponseError(bytes(data[length:]), "CRLF after job body", desynchronized=True)
    return bytes(data[:length])


# =============================================================================
# Response Classifier
# =============================================================================


def check_error(line: bytes) -> None:
    """
    Raise the matching ServerError if ``line`` is an error token.

    Raises:
        ServerError: One of its eleven subclasses.
    """
    error = ERROR_RESPONSES.get(line)
    if error is not None:
        raise error()


def expect(
    line: bytes,
    status: bytes,
    numeric_fields: int = 0,
    text_fields: int = 0,
    *,
    declares_body: bool = False,
) -> Response:
    """
    Classify a reply line against one success grammar.

    Error tokens raise their ServerError first. The status must then equal
    ``status`` and be followed by exactly ``numeric_fields`` digit-only fields
    and then ``text_fields`` free fields.

    Set ``declares_body`` for replies that announce a body: a mismatch then
    means the bytes that follow cannot be framed.

    Raises:
        ServerError: If the line is an error token.
        UnexpectedResponseError: If the line does not match the grammar.
    """
    check_error(line)

    grammar = b" ".join([status] + [b"<n>"] * numeric_fields + [b"<s>"] * text_fields)
    mismatch = UnexpectedResponseError(line, grammar.decode("ascii"), desynchronized=declares_body)
    if not line.endswith(CRLF):
        raise mismatch
    response = Response.from_line(line)
    if response.status != status or len(response.fields) != numeric_fields + text_fields:
        raise mismatch
    for field in response.fields[:numeric_fields]:
        if not _NUMBER.fullmatch(field):
            raise mismatch
    for field in response.fields[numeric_fields:]:
        if not field:
            raise mismatch
    return response


def accept(line: bytes) -> bytes:
    """
    Classify a reply whose only success meaning is "not an error".

    delete, release, bury and use succeed on any line that is not an error
    token, so ``RELEASED`` and the ``BURIED`` a release gets when the server
    is out of memory are both successes.

    Returns:
        The line, unchanged.

    Raises:
        ServerError: If the line is an error token.
    """
    check_error(line)
    return line


def parse_inserted(line: bytes) -> int:
    """Parse ``INSERTED <id>`` and return the job id."""
    return int(expect(line, Status.INSERTED, 1).fields[0])


def parse_reserved(line: bytes) -> tuple[int, int]:
    """Parse ``RESERVED <id> <bytes>`` and return ``(job_id, body_length)``."""
    job_id, length = expect(line, Status.RESERVED, 2, declares_body=True).fields
    return int(job_id), int(length)


def parse_watching(line: bytes) -> int:
    """Parse ``WATCHING <count>`` and return the watch-list size."""
    return int(expect(line, Status.WATCHING, 1).fields[0])


def parse_ok(line: bytes) -> int:
    """Parse ``OK <bytes>`` and return the body length."""
    return int(expect(line, Status.OK, 1, declares_body=True).fields[0])


def parse_using(line: bytes) -> str | None:
    """Return the tube named by ``USING <tube>``, or None if the line names none."""
    check_error(line)
    status, _, tube = line.rstrip(CRLF).partition(b" ")
    if status != Status.USING or not tube:
        return None
    return tube.decode("ascii", "replace")

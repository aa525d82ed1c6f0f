# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Custom exceptions for the pystalk beanstalkd client.

All exceptions inherit from PystalkError, making it easy to catch every
client-related error with a single except clause:

    try:
        client.delete(job)
    except PystalkError as e:
        print(f"beanstalkd error: {e}")

Errors fall into three families that never overlap:

- ServerError: the server answered with one of its named error tokens
  (NOT_FOUND, TIMED_OUT, ...).
- ConnectionError: the transport failed (reset, timeout, closed stream).
  The client that raised it can no longer be used.
- UnexpectedResponseError: the server answered with something that is
  neither an error token nor the reply the command expects.

For more granular error handling, catch specific exception types:

    try:
        job = client.reserve_with_timeout(5)
    except TimedOutError:
        print("No job ready")
    except ConnectionError as e:
        print(f"Lost connection to {e.host}:{e.port}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Job


class PystalkError(Exception):
    """
    Base exception for all pystalk errors.

    All pystalk exceptions inherit from this class, allowing you to catch
    all client-related errors with a single except clause.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        self.hint = hint
        if hint:
            message = f"{message}\n\n  Hint: {hint}"
        super().__init__(message)


class ConnectionError(PystalkError):
    """
    Raised when the transport to the beanstalkd server fails.

    Common causes:
    - Server is not running
    - Wrong host or port
    - Connection reset while a command was in flight
    """

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        *,
        hint: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        if hint is None and host:
            hint = f"Check that beanstalkd is running on {host}:{port}"
        super().__init__(message, hint=hint)


class ConnectionClosedError(ConnectionError):
    """
    Raised when the connection is closed or no longer usable.

    This happens when:
    - The server closed the stream
    - close() was called on the client
    - An earlier transport failure invalidated the client
    """

    def __init__(self, message: str = "Connection closed by server") -> None:
        super().__init__(message, hint="Open a new connection with pystalk.connect()")


class ConnectionTimeoutError(ConnectionError):
    """
    Raised when connecting or reading from the socket times out.

    A read timeout leaves the stream at an unknown position, so the
    client is invalidated afterwards.
    """

    def __init__(self, message: str, host: str | None = None, port: int | None = None) -> None:
        super().__init__(
            message,
            host,
            port,
            hint="Increase connect_timeout_ms/socket_timeout_ms or check network connectivity",
        )


class UnexpectedResponseError(PystalkError):
    """
    Raised when a reply matches neither a known error token nor the
    success form of the command that was sent.

    ``desynchronized`` is set when the reply may have been followed by bytes
    the client cannot account for (a malformed header for a command whose
    reply carries a body, or a broken frame). The connection is unusable
    after such an error. A single odd status line leaves it intact.
    """

    def __init__(
        self,
        response: bytes,
        expected: str | None = None,
        *,
        desynchronized: bool = False,
    ) -> None:
        self.response = response
        self.expected = expected
        self.desynchronized = desynchronized
        message = f"Unexpected response from server: {response!r}"
        if expected:
            message += f" (expected {expected})"
        super().__init__(message)


class ServerError(PystalkError):
    """
    Base exception for the error tokens beanstalkd sends back.

    Each subclass is bound to exactly one token through ``token``.
    """

    token: bytes = b""

    def __init__(self, message: str | None = None, *, hint: str | None = None) -> None:
        super().__init__(message or f"Server replied {self.token.decode('ascii')}", hint=hint)


class OutOfMemoryError(ServerError):
    """The server cannot allocate enough memory for the job."""

    token = b"OUT_OF_MEMORY"


class InternalError(ServerError):
    """The server hit a bug; the command should be reported."""

    token = b"INTERNAL_ERROR"


class DrainingError(ServerError):
    """
    The server is in drain mode and is no longer accepting new jobs.

    Try another server or disconnect and retry later.
    """

    token = b"DRAINING"

    def __init__(self) -> None:
        super().__init__(hint="The server is shutting down; put jobs on another server")


class BadFormatError(ServerError):
    """The client sent a malformed command line."""

    token = b"BAD_FORMAT"


class UnknownCommandError(ServerError):
    """The server does not know the command verb."""

    token = b"UNKNOWN_COMMAND"


class NotFoundError(ServerError):
    """
    The job does not exist or is not reserved by this client.

    Returned by delete, release and bury.
    """

    token = b"NOT_FOUND"


class JobTooBigError(ServerError):
    """The job body is larger than the server's max-job-size."""

    token = b"JOB_TOO_BIG"

    def __init__(self) -> None:
        super().__init__(hint="Split the job body or raise beanstalkd's -z limit")


class ExpectedCrlfError(ServerError):
    """The job body was not followed by CRLF."""

    token = b"EXPECTED_CRLF"


class DeadlineSoonError(ServerError):
    """
    A job reserved by this client is about to exceed its time-to-run.

    Only sent in reply to reserve and reserve-with-timeout.
    """

    token = b"DEADLINE_SOON"


class TimedOutError(ServerError):
    """No job became available before the reserve-with-timeout deadline."""

    token = b"TIMED_OUT"


class NotIgnoredError(ServerError):
    """The client tried to ignore the only tube in its watch list."""

    token = b"NOT_IGNORED"

    def __init__(self) -> None:
        super().__init__(hint="Watch another tube before ignoring the last one")


class CryptoError(PystalkError):
    """
    Raised when job body encryption or decryption fails.

    When a reserved job cannot be decrypted, ``job`` holds it with its
    sealed body. The job is still reserved by this client, so it should
    be buried or deleted.
    """

    def __init__(self, message: str, *, job: Job | None = None, hint: str | None = None) -> None:
        self.job = job
        super().__init__(message, hint=hint)


def is_not_found(error: BaseException) -> bool:
    """Return True if ``error`` is the server's NOT_FOUND reply."""
    return isinstance(error, NotFoundError)


def is_timed_out(error: BaseException) -> bool:
    """Return True if ``error`` is the server's TIMED_OUT reply."""
    return isinstance(error, TimedOutError)


def is_bad_format(error: BaseException) -> bool:
    """Return True if ``error`` is the server's BAD_FORMAT reply."""
    return isinstance(error, BadFormatError)

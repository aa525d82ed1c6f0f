# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pystalk Client.

A blocking client for beanstalkd that owns exactly one TCP connection.
Each operation is a whole command/response exchange performed under the
client's lock, so one client can be shared between threads without the
replies of two commands ever interleaving on the stream.

Usage Patterns:

    # Pattern 1: Simple usage (recommended for scripts)
    from pystalk import connect
    client = connect("localhost", 11300)
    job_id = client.put(b"Hello!")

    # Pattern 2: Context manager (recommended for applications)
    from pystalk import BeanstalkClient
    with BeanstalkClient("localhost", 11300) as client:
        job = client.reserve()
        client.delete(job)
    # Connection auto-closes when exiting the block

    # Pattern 3: Explicit lifecycle management
    client = BeanstalkClient("localhost", 11300)
    try:
        client.use("emails")
        client.put(b'{"to": "a@example.com"}')
    finally:
        client.close()

A transport failure (reset, timeout, closed stream) invalidates the client;
every later call raises ConnectionClosedError. Nothing is retried: open a new
client with connect().
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from .crypto import Encryptor
from .exceptions import (
    ConnectionClosedError,
    ConnectionError,
    ConnectionTimeoutError,
    CryptoError,
    UnexpectedResponseError,
)
from .models import ClientConfig
from .protocol import (
    Command,
    accept,
    encode_bury,
    encode_delete,
    encode_ignore,
    encode_put,
    encode_release,
    encode_reserve,
    encode_reserve_with_timeout,
    encode_stats,
    encode_use,
    encode_watch,
    parse_inserted,
    parse_ok,
    parse_reserved,
    parse_using,
    parse_watching,
    read_body,
    read_line,
)
from .serde import (
    BytesDeserializer,
    BytesSerializer,
    Deserializer,
    SerdeRegistry,
    Serializer,
    decode_stats,
)
from .types import (
    DEFAULT_DELAY,
    DEFAULT_PORT,
    DEFAULT_PRIORITY,
    DEFAULT_TTR,
    DEFAULT_TUBE,
    Job,
    JobRef,
    job_id,
)

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BeanstalkClient:
    """
    beanstalkd client bound to a single connection.

    Example:
        >>> client = BeanstalkClient("localhost", 11300)
        >>> client.use("images")
        >>> job_id = client.put(b"resize 42", ttr=120)
        >>> client.watch("images")
        2
        >>> job = client.reserve()
        >>> client.delete(job)
        >>> client.close()
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        *,
        config: ClientConfig | None = None,
        sock: socket.socket | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the client and connect.

        Args:
            host: Server host name (overrides config.host).
            port: Server port (overrides config.port).
            config: Optional ClientConfig object.
            sock: An already-connected socket; no connection is opened.
            **kwargs: Override config options (connect_timeout_ms, etc.)
        """
        if host is not None:
            kwargs["host"] = host
        if port is not None:
            kwargs["port"] = port
        if config is None:
            config = ClientConfig(**kwargs)
        else:
            config = config.model_copy()
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        self._config = config
        self._lock = threading.Lock()
        self._closed = False
        self._sock: socket.socket | None = None
        self._reader: BinaryIO | None = None
        self._encryptor: Encryptor | None = None
        self._using = DEFAULT_TUBE
        self._watching = [DEFAULT_TUBE]

        if config.encryption_enabled:
            if not config.encryption_key:
                raise ValueError("encryption_enabled requires encryption_key")
            self._encryptor = Encryptor.from_hex_key(config.encryption_key)

        if sock is None:
            sock = self._connect()
        self._attach(sock)

    @classmethod
    def from_socket(
        cls,
        sock: socket.socket,
        *,
        config: ClientConfig | None = None,
        **kwargs: Any,
    ) -> BeanstalkClient:
        """Wrap a socket that is already connected to a beanstalkd server."""
        return cls(config=config, sock=sock, **kwargs)

    def _connect(self) -> socket.socket:
        """Connect to the configured server, trying each resolved address."""
        host, port = self._config.host, self._config.port
        timeout = self._config.connect_timeout_ms / 1000.0

        try:
            addrs = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ConnectionError(f"Failed to resolve {host}: {e}", host, port) from e

        last_error: Exception | None = None
        for family, socktype, proto, _canonname, sockaddr in addrs:
            sock = None
            try:
                sock = socket.socket(family, socktype, proto)
                sock.settimeout(timeout)
                if self._config.keepalive:
                    # Reserve can leave the connection idle for long periods.
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
                sock.connect(sockaddr)
                logger.debug("Connected to %s:%s via %s", host, port, sockaddr)
                return sock
            except socket.timeout:
                last_error = ConnectionTimeoutError(f"Connection to {host}:{port} timed out", host, port)
                if sock:
                    sock.close()
            except OSError as e:
                last_error = ConnectionError(f"Failed to connect to {host}:{port}: {e}", host, port)
                if sock:
                    sock.close()

        if last_error:
            raise last_error
        raise ConnectionError(f"No addresses found for {host}:{port}", host, port)

    def _attach(self, sock: socket.socket) -> None:
        timeout_ms = self._config.socket_timeout_ms
        sock.settimeout(timeout_ms / 1000.0 if timeout_ms is not None else None)
        self._sock = sock
        # Unbuffered, so nothing past the current reply is ever pulled off the socket.
        self._reader = sock.makefile("rb", buffering=0)

    def _ensure_connected(self) -> None:
        """Fail fast on a closed or invalidated connection."""
        if self._closed:
            raise ConnectionClosedError("Client is closed")
        if self._sock is None:
            raise ConnectionClosedError("Connection is no longer usable after an earlier failure")

    def _invalidate(self, reason: Exception) -> None:
        if not self._closed:
            logger.warning(
                "Dropping connection to %s:%s: %s", self._config.host, self._config.port, reason
            )
        self._release_socket()

    def _release_socket(self) -> None:
        for resource in (self._reader, self._sock):
            if resource is not None:
                try:
                    resource.close()
                except OSError:
                    pass
        self._reader = None
        self._sock = None

    def _send_request(self, command: Command, handle_reply: Callable[[BinaryIO], T]) -> T:
        """
        Perform one command/response exchange.

        The lock is held from the first byte written until the reply,
        including any body, has been consumed.

        Args:
            command: Encoded command to send.
            handle_reply: Reads and classifies the reply from the stream.

        Returns:
            Whatever handle_reply returns.

        Raises:
            ServerError: If the server replies with an error token.
            UnexpectedResponseError: If the reply matches no expected form.
                The connection is dropped only when the error is
                desynchronized.
            ConnectionError: If the transport fails.
        """
        host, port = self._config.host, self._config.port
        with self._lock:
            self._ensure_connected()
            logger.debug("-> %s", command.verb.value)
            try:
                self._sock.sendall(command.to_bytes())
                return handle_reply(self._reader)
            except UnexpectedResponseError as e:
                if e.desynchronized:
                    self._invalidate(e)
                raise
            except (EOFError, OSError) as e:
                self._invalidate(e)
                if self._closed:
                    raise ConnectionClosedError("Client is closed") from e
                if isinstance(e, EOFError):
                    raise ConnectionClosedError(str(e)) from e
                if isinstance(e, socket.timeout):
                    raise ConnectionTimeoutError(
                        f"Timed out waiting for reply to {command.verb.value}", host, port
                    ) from e
                raise ConnectionError(str(e), host, port) from e

    @staticmethod
    def _read_reply(reader: BinaryIO) -> bytes:
        line = read_line(reader)
        logger.debug("<- %r", line)
        return line

    def close(self) -> None:
        """
        Close the client connection.

        May be called from another thread while a command such as reserve()
        is waiting for its reply. The socket is shut down first, which ends
        the pending read with ConnectionClosedError.
        """
        self._closed = True
        sock = self._sock
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        with self._lock:
            self._release_socket()

    @property
    def closed(self) -> bool:
        """True once close() was called or the connection was invalidated."""
        return self._closed or self._sock is None

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def using(self) -> str:
        """Tube that put() currently inserts into."""
        return self._using

    @property
    def watching(self) -> list[str]:
        """Tubes reserve() currently draws from, as tracked by this client."""
        return list(self._watching)

    def __enter__(self) -> BeanstalkClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    # =========================================================================
    # Producer Operations
    # =========================================================================

    def put(
        self,
        body: bytes | str,
        priority: int = DEFAULT_PRIORITY,
        delay: int = DEFAULT_DELAY,
        ttr: int = DEFAULT_TTR,
    ) -> int:
        """
        Insert a job into the tube selected with use().

        Args:
            body: Job body (bytes, or a string encoded as UTF-8).
            priority: Lower values are reserved first (0 is most urgent).
            delay: Seconds before the job becomes ready.
            ttr: Seconds a worker may hold the job before it is released.

        Returns:
            The id the server assigned to the job.

        Raises:
            JobTooBigError: If the body exceeds the server's max-job-size.
            DrainingError: If the server is not accepting new jobs.
            ValueError: If an argument cannot be encoded.

        Example:
            >>> job_id = client.put(b"send welcome email", priority=10, ttr=30)
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        if self._encryptor is not None:
            body = self._encryptor.encrypt(body)

        command = encode_put(priority, delay, ttr, body)
        return self._send_request(command, lambda r: parse_inserted(self._read_reply(r)))

    def put_object(
        self,
        value: Any,
        serializer: Serializer | str | None = None,
        **kwargs: Any,
    ) -> int:
        """
        Serialize ``value`` and put it as a job.

        Args:
            value: Object to put.
            serializer: Serializer to use, or the name it is registered under
                in SerdeRegistry ("json", "string", "binary"). If None, uses
                the default from config.
            **kwargs: priority, delay and ttr, as for put().

        Example:
            >>> client.put_object({"to": "a@example.com"}, serializer="json")
        """
        if isinstance(serializer, str):
            ser = SerdeRegistry.serializer(serializer)
        else:
            ser = serializer or self._config.value_serializer or BytesSerializer()
        return self.put(ser.serialize(value), **kwargs)

    def use(self, tube: str) -> None:
        """
        Select the tube that subsequent put() calls insert into.

        Example:
            >>> client.use("emails")
            >>> client.using
            'emails'
        """
        line = self._send_request(encode_use(tube), lambda r: accept(self._read_reply(r)))
        self._using = parse_using(line) or tube

    # =========================================================================
    # Worker Operations
    # =========================================================================

    def _read_job(self, reader: BinaryIO) -> Job:
        reserved_id, length = parse_reserved(self._read_reply(reader))
        return Job(id=reserved_id, body=read_body(reader, length))

    def _open(self, job: Job) -> Job:
        if self._encryptor is None:
            return job
        try:
            body = self._encryptor.decrypt(job.body)
        except CryptoError as e:
            raise CryptoError(f"Cannot decrypt job {job.id}: {e}", job=job) from e
        return Job(id=job.id, body=body)

    def reserve(self) -> Job:
        """
        Reserve the next ready job from the watched tubes.

        Blocks until a job is available.

        Raises:
            CryptoError: If encryption is enabled and the body cannot be
                decrypted; the error's ``job`` is still reserved.
            DeadlineSoonError: If a job this client holds is about to
                exceed its time-to-run.
        """
        return self._open(self._send_request(encode_reserve(), self._read_job))

    def reserve_with_timeout(self, seconds: int) -> Job:
        """
        Reserve a job, letting the server wait at most ``seconds``.

        The timeout is enforced by the server; the call still blocks
        until the server answers.

        Raises:
            TimedOutError: If no job became ready in time.
            DeadlineSoonError: If a job this client holds is about to
                exceed its time-to-run.

        Example:
            >>> try:
            ...     job = client.reserve_with_timeout(5)
            ... except TimedOutError:
            ...     job = None
        """
        command = encode_reserve_with_timeout(seconds)
        return self._open(self._send_request(command, self._read_job))

    def reserve_object(
        self,
        timeout: int | None = None,
        deserializer: Deserializer | str | None = None,
    ) -> tuple[Job, Any]:
        """
        Reserve a job and decode its body.

        Args:
            timeout: Seconds for reserve-with-timeout; None blocks.
            deserializer: Deserializer to use, or its SerdeRegistry name. If
                None, uses the default from config.

        Returns:
            The reserved job and its decoded body.
        """
        if isinstance(deserializer, str):
            deser = SerdeRegistry.deserializer(deserializer)
        else:
            deser = deserializer or self._config.value_deserializer or BytesDeserializer()
        job = self.reserve() if timeout is None else self.reserve_with_timeout(timeout)
        return job, deser.deserialize(job.body)

    def delete(self, job: JobRef) -> None:
        """
        Delete a job.

        Raises:
            NotFoundError: If the job does not exist or is reserved by
                another client.
        """
        command = encode_delete(job_id(job))
        self._send_request(command, lambda r: accept(self._read_reply(r)))

    def release(
        self,
        job: JobRef,
        priority: int = DEFAULT_PRIORITY,
        delay: int = DEFAULT_DELAY,
    ) -> None:
        """
        Put a reserved job back into the ready queue.

        Any reply other than an error token counts as success, including
        the BURIED a server that is out of memory sends instead of RELEASED.

        Raises:
            NotFoundError: If the job is not reserved by this client.
        """
        command = encode_release(job_id(job), priority, delay)
        self._send_request(command, lambda r: accept(self._read_reply(r)))

    def bury(self, job: JobRef, priority: int = DEFAULT_PRIORITY) -> None:
        """
        Bury a reserved job so it is not reserved again until kicked.

        Raises:
            NotFoundError: If the job is not reserved by this client.
        """
        command = encode_bury(job_id(job), priority)
        self._send_request(command, lambda r: accept(self._read_reply(r)))

    def watch(self, tube: str) -> int:
        """
        Add a tube to the watch list.

        Returns:
            Number of tubes now watched.
        """
        count = self._send_request(encode_watch(tube), lambda r: parse_watching(self._read_reply(r)))
        if tube not in self._watching:
            self._watching.append(tube)
        return count

    def ignore(self, tube: str) -> int:
        """
        Remove a tube from the watch list.

        Returns:
            Number of tubes still watched.

        Raises:
            NotIgnoredError: If ``tube`` is the only tube watched.
        """
        count = self._send_request(encode_ignore(tube), lambda r: parse_watching(self._read_reply(r)))
        if tube in self._watching:
            self._watching.remove(tube)
        return count

    # =========================================================================
    # Server Information
    # =========================================================================

    def _read_stats(self, reader: BinaryIO) -> bytes:
        length = parse_ok(self._read_reply(reader))
        return read_body(reader, length)

    def stats(self) -> dict[str, str]:
        """
        Read server statistics.

        Returns:
            Mapping of statistic names to their values, all as strings.

        Example:
            >>> client.stats()["current-jobs-ready"]
            '3'
        """
        return decode_stats(self._send_request(encode_stats(), self._read_stats))


# =============================================================================
# Module-level convenience functions
# =============================================================================

def connect(
    host: str = "localhost",
    port: int = DEFAULT_PORT,
    **kwargs: Any,
) -> BeanstalkClient:
    """
    Create a connected beanstalkd client.

    Args:
        host: Server host name or address.
        port: Server port (beanstalkd listens on 11300 by default).
        **kwargs: Additional configuration options (see ClientConfig).

    Returns:
        Connected BeanstalkClient instance.

    Raises:
        ConnectionError: If the connection cannot be established.

    Examples:
        >>> client = connect()
        >>> client.put(b"Hello!")

        >>> with connect("queue.internal", 11300, socket_timeout_ms=30000) as client:
        ...     client.stats()
    """
    return BeanstalkClient(host, port, **kwargs)

# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pystalk - Python client for the beanstalkd work queue.

A small, thread-safe client library for beanstalkd with support for:
- All core producer and worker commands (put, reserve, delete, release, bury)
- Tube selection (use, watch, ignore) and server statistics
- Typed, checkable errors for every server error reply
- A worker loop and reactive job streams
- Optional end-to-end job body encryption

Quick Start:
    >>> from pystalk import connect
    >>>
    >>> client = connect("localhost", 11300)
    >>> job_id = client.put(b"Hello, beanstalkd!")
    >>> job = client.reserve()
    >>> print(job.decode())
    Hello, beanstalkd!
    >>> client.delete(job)

Context Manager (Recommended for applications):
    >>> with connect() as client:
    ...     client.use("emails")
    ...     client.put(b'{"to": "a@example.com"}', ttr=30)
    # Connection auto-closes when exiting the block

Worker Loop:
    >>> from pystalk import Worker
    >>>
    >>> worker = Worker(client, ["emails"])
    >>> worker.run(send_email)  # deletes on success, buries on failure

Error Handling:
    >>> from pystalk import TimedOutError, is_not_found
    >>>
    >>> try:
    ...     job = client.reserve_with_timeout(5)
    ... except TimedOutError:
    ...     print("No job ready")
"""

import logging

from .client import BeanstalkClient, connect
from .consumer import Worker
from .crypto import Encryptor, generate_key, validate_key
from .exceptions import (
    BadFormatError,
    ConnectionClosedError,
    ConnectionError,
    ConnectionTimeoutError,
    CryptoError,
    DeadlineSoonError,
    DrainingError,
    ExpectedCrlfError,
    InternalError,
    JobTooBigError,
    NotFoundError,
    NotIgnoredError,
    OutOfMemoryError,
    PystalkError,
    ServerError,
    TimedOutError,
    UnexpectedResponseError,
    UnknownCommandError,
    is_bad_format,
    is_not_found,
    is_timed_out,
)
from .models import ClientConfig, FailureAction, WorkerConfig
from .protocol import Verb
from .reactive import (
    AsyncReactiveWorker,
    ReactivePutter,
    ReactiveWorker,
    from_worker,
    to_putter,
)
from .types import (
    DEFAULT_DELAY,
    DEFAULT_PORT,
    DEFAULT_PRIORITY,
    DEFAULT_TTR,
    DEFAULT_TUBE,
    Job,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"
__license__ = "Apache-2.0"

__all__ = [
    # Client
    "BeanstalkClient",
    "connect",
    # Worker
    "Worker",
    # Reactive
    "ReactiveWorker",
    "ReactivePutter",
    "AsyncReactiveWorker",
    "from_worker",
    "to_putter",
    # Crypto
    "Encryptor",
    "generate_key",
    "validate_key",
    # Protocol
    "Verb",
    # Configuration
    "ClientConfig",
    "WorkerConfig",
    "FailureAction",
    # Types
    "Job",
    "DEFAULT_PORT",
    "DEFAULT_PRIORITY",
    "DEFAULT_DELAY",
    "DEFAULT_TTR",
    "DEFAULT_TUBE",
    # Exceptions
    "PystalkError",
    "ConnectionError",
    "ConnectionClosedError",
    "ConnectionTimeoutError",
    "UnexpectedResponseError",
    "ServerError",
    "OutOfMemoryError",
    "InternalError",
    "DrainingError",
    "BadFormatError",
    "UnknownCommandError",
    "NotFoundError",
    "JobTooBigError",
    "ExpectedCrlfError",
    "DeadlineSoonError",
    "TimedOutError",
    "NotIgnoredError",
    "CryptoError",
    "is_not_found",
    "is_timed_out",
    "is_bad_format",
]

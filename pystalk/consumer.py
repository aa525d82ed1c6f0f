# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pystalk Worker implementation.

Provides the usual beanstalkd worker loop on top of a client:
watch some tubes, reserve jobs, hand each one to a handler, then delete
it on success or bury/release it on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any

from .exceptions import CryptoError, DeadlineSoonError, NotFoundError, PystalkError, TimedOutError
from .models import FailureAction, WorkerConfig
from .types import DEFAULT_TUBE, Job

if TYPE_CHECKING:
    from .client import BeanstalkClient

logger = logging.getLogger(__name__)


class Worker:
    """
    Worker that reserves and processes jobs from a set of tubes.

    Example:
        >>> worker = Worker(client, ["emails", "images"])
        >>> for job in worker:
        ...     handle(job.body)
        ...     client.delete(job)

        >>> worker.run(handle_job, max_jobs=100)  # deletes or buries for you
    """

    def __init__(
        self,
        client: BeanstalkClient,
        tubes: str | Iterable[str] = (),
        *,
        config: WorkerConfig | None = None,
    ) -> None:
        """
        Initialize the worker and watch its tubes.

        Args:
            client: Connected client; the worker issues all its commands on it.
            tubes: Tube name or names to watch. Empty keeps the client's
                current watch list.
            config: Worker configuration.
        """
        self._client = client
        self._config = config or WorkerConfig()
        self._closed = False

        if isinstance(tubes, str):
            tubes = [tubes]
        self._tubes = list(tubes)

        for tube in self._tubes:
            client.watch(tube)
        if self._config.ignore_default and self._tubes and DEFAULT_TUBE not in self._tubes:
            client.ignore(DEFAULT_TUBE)

    @property
    def config(self) -> WorkerConfig:
        return self._config

    @property
    def tubes(self) -> list[str]:
        """Tubes the client is watching."""
        return self._client.watching

    def reserve(self) -> Job | None:
        """
        Reserve one job, waiting at most config.reserve_timeout seconds.

        Returns:
            The reserved job, or None if none became ready in time.

        Raises:
            DeadlineSoonError: If a job held by this client is about to
                exceed its time-to-run.
        """
        if self._closed:
            raise PystalkError("Worker is closed")
        try:
            return self._client.reserve_with_timeout(self._config.reserve_timeout)
        except TimedOutError:
            return None

    def __iter__(self) -> Iterator[Job]:
        """
        Yield reserved jobs until close() is called.

        Jobs whose body cannot be decrypted are never yielded; they are
        buried or released according to config.failure_action.
        """
        while not self._closed:
            try:
                job = self.reserve()
            except DeadlineSoonError:
                logger.info("A reserved job is close to its time-to-run deadline")
                continue
            except CryptoError as e:
                if e.job is None:
                    raise
                logger.error("Setting aside job %d: %s", e.job.id, e)
                self._settle(self._fail, e.job)
                continue
            if job is not None:
                yield job

    def run(self, handler: Callable[[Job], Any], *, max_jobs: int | None = None) -> int:
        """
        Process jobs with ``handler`` until closed or ``max_jobs`` are done.

        A job is deleted when the handler returns. When the handler raises,
        the job is buried or released according to config.failure_action
        and the loop continues. A job that is no longer reserved when it is
        settled (NOT_FOUND) is logged and skipped.

        Returns:
            Number of jobs processed, whether they succeeded or not.
        """
        processed = 0
        if max_jobs is not None and max_jobs <= 0:
            return processed

        for job in self:
            try:
                handler(job)
            except Exception:
                logger.exception("Handler failed for job %d", job.id)
                self._settle(self._fail, job)
            else:
                self._settle(self._client.delete, job)
            processed += 1
            if max_jobs is not None and processed >= max_jobs:
                break
        return processed

    def _settle(self, action: Callable[[Job], Any], job: Job) -> None:
        try:
            action(job)
        except NotFoundError:
            # The server gave the job to another worker once its TTR ran out.
            logger.warning("Job %d is no longer reserved by this worker", job.id)

    def _fail(self, job: Job) -> None:
        if self._config.failure_action is FailureAction.RELEASE:
            self._client.release(job, self._config.failure_priority, self._config.release_delay)
        else:
            self._client.bury(job, self._config.failure_priority)

    def close(self) -> None:
        """Stop iteration; the client stays open."""
        self._closed = True

    def __enter__(self) -> Worker:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Reactive Streams support for pystalk.

Provides RxPY-based reactive patterns for reserving and putting jobs,
so job streams can be filtered, mapped and buffered with stream operators.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable

import reactivex as rx
from reactivex import Observable, Subject, operators as ops
from reactivex.disposable import CompositeDisposable, Disposable
from reactivex.scheduler import ThreadPoolScheduler

from .consumer import Worker
from .models import WorkerConfig
from .types import Job

if TYPE_CHECKING:
    from .client import BeanstalkClient


class ReactiveWorker:
    """
    Reactive job source using RxPY Observable streams.

    A background thread reserves jobs and pushes them to subscribers.
    Subscribers own the jobs they receive and must delete, release or
    bury them.

    Example:
        >>> worker = ReactiveWorker(client, ["images"])
        >>> worker.jobs().pipe(
        ...     ops.filter(lambda job: job.body.startswith(b"resize")),
        ... ).subscribe(on_next=process)
        >>> worker.start()
    """

    def __init__(
        self,
        client: BeanstalkClient,
        tubes: str | Iterable[str] = (),
        *,
        config: WorkerConfig | None = None,
        max_workers: int = 4,
    ) -> None:
        """
        Initialize reactive worker.

        Args:
            client: Connected client instance.
            tubes: Tube name or names to watch.
            config: Worker configuration; reserve_timeout bounds how long
                stop() may take to be noticed.
            max_workers: Threads used to deliver jobs to subscribers.
        """
        self._client = client
        self._worker = Worker(client, tubes, config=config)
        self._running = False
        self._thread: threading.Thread | None = None
        self._subject: Subject[Job] = Subject()
        self._scheduler = ThreadPoolScheduler(max_workers=max_workers)

    def start(self) -> None:
        """Start reserving jobs."""
        if self._running:
            return

        self._running = True

        def reserve_loop() -> None:
            while self._running:
                try:
                    job = self._worker.reserve()
                except Exception as e:
                    if self._running:
                        self._running = False
                        self._subject.on_error(e)
                    return
                if job is None:
                    continue
                if not self._running:
                    # Reserved after stop(); give it back to the tube.
                    self._client.release(job)
                    break
                self._subject.on_next(job)

        self._thread = threading.Thread(target=reserve_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """
        Stop reserving jobs and complete the stream.

        Waits for an in-flight reserve, which the server ends within
        reserve_timeout seconds.
        """
        self._running = False
        self._worker.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._worker.config.reserve_timeout + 1)
        self._subject.on_completed()

    def jobs(self) -> Observable[Job]:
        """
        Get observable stream of reserved jobs.

        Returns:
            Observable stream of Job objects.
        """
        return self._subject.pipe(ops.observe_on(self._scheduler))

    def __enter__(self) -> ReactiveWorker:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


class ReactivePutter:
    """
    Reactive job sink using RxPY Observable streams.

    Example:
        >>> putter = ReactivePutter(client, "emails")
        >>> rx.of(b"a@example.com", b"b@example.com").pipe(
        ...     putter.publish(),
        ... ).subscribe(on_next=lambda job_id: print(f"Queued job {job_id}"))
    """

    def __init__(
        self,
        client: BeanstalkClient,
        tube: str | None = None,
        **put_options: Any,
    ) -> None:
        """
        Initialize reactive putter.

        Args:
            client: Connected client instance.
            tube: Tube to put into; None keeps the client's current tube.
            **put_options: priority, delay and ttr passed to every put().
        """
        self._client = client
        self._put_options = put_options
        if tube is not None:
            client.use(tube)

    def publish(self) -> Callable[[Observable[bytes]], Observable[int]]:
        """
        Create an operator that puts each body and emits its job id.

        Returns:
            Operator function for use with pipe().
        """
        def _publish(source: Observable[bytes]) -> Observable[int]:
            def subscribe(observer: Any, scheduler: Any = None) -> Any:
                def on_next(body: bytes) -> None:
                    try:
                        job_id = self._client.put(body, **self._put_options)
                    except Exception as e:
                        observer.on_error(e)
                        return
                    observer.on_next(job_id)

                return source.subscribe(
                    on_next=on_next,
                    on_error=observer.on_error,
                    on_completed=observer.on_completed,
                    scheduler=scheduler
                )

            return rx.create(subscribe)

        return _publish

    def publish_batch(
        self,
        batch_size: int = 10,
        timeout_ms: int = 1000
    ) -> Callable[[Observable[bytes]], Observable[list[int]]]:
        """
        Create an operator that puts bodies in groups and emits the ids.

        Args:
            batch_size: Maximum bodies per group.
            timeout_ms: Maximum time to wait for a group to fill.

        Returns:
            Operator function for use with pipe().
        """
        def _publish_batch(source: Observable[bytes]) -> Observable[list[int]]:
            return source.pipe(
                ops.buffer_with_time_or_count(
                    timespan=timeout_ms / 1000,
                    count=batch_size
                ),
                ops.filter(lambda batch: len(batch) > 0),
                ops.map(lambda batch: [
                    self._client.put(body, **self._put_options) for body in batch
                ])
            )

        return _publish_batch


class AsyncReactiveWorker:
    """
    Async job source for asyncio integration.

    Blocking reserves run in a single background thread.

    Example:
        >>> async with AsyncReactiveWorker(client, "images") as worker:
        ...     async for job in worker:
        ...         await process(job)
        ...         client.delete(job)
    """

    def __init__(
        self,
        client: BeanstalkClient,
        tubes: str | Iterable[str] = (),
        *,
        config: WorkerConfig | None = None,
    ) -> None:
        self._worker = Worker(client, tubes, config=config)
        self._running = False
        self._queue: asyncio.Queue[Job | BaseException | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start reserving jobs."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._reserve_loop())

    async def _reserve_loop(self) -> None:
        executor = ThreadPoolExecutor(max_workers=1)
        loop = asyncio.get_running_loop()

        try:
            while self._running:
                try:
                    job = await loop.run_in_executor(executor, self._worker.reserve)
                except Exception as e:
                    await self._queue.put(e)
                    return
                if job is not None:
                    await self._queue.put(job)
        finally:
            await self._queue.put(None)
            executor.shutdown(wait=False)

    async def stop(self) -> None:
        """Stop reserving jobs."""
        self._running = False
        self._worker.close()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def __aiter__(self) -> AsyncReactiveWorker:
        return self

    async def __anext__(self) -> Job:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def __aenter__(self) -> AsyncReactiveWorker:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()


def from_worker(
    client: BeanstalkClient,
    tubes: str | Iterable[str] = (),
    *,
    config: WorkerConfig | None = None,
) -> Observable[Job]:
    """
    Create an Observable of jobs reserved from ``tubes``.

    Args:
        client: Connected client instance.
        tubes: Tube name or names to watch.
        config: Worker configuration.

    Returns:
        Observable stream of reserved jobs. Reserving starts on the
        first subscription, so no job is reserved without a subscriber;
        disposing the subscription stops the worker.
    """
    worker = ReactiveWorker(client, tubes, config=config)

    def subscribe(observer: Any, scheduler: Any = None) -> Any:
        subscription = worker.jobs().subscribe(observer, scheduler=scheduler)
        worker.start()
        return CompositeDisposable(subscription, Disposable(worker.stop))

    return rx.create(subscribe)


def to_putter(
    client: BeanstalkClient,
    tube: str | None = None,
    **put_options: Any,
) -> Callable[[Observable[bytes]], Observable[int]]:
    """
    Create an operator that puts each body into ``tube``.

    Args:
        client: Connected client instance.
        tube: Tube to put into.
        **put_options: priority, delay and ttr for every put().

    Returns:
        Operator function for use with pipe().
    """
    return ReactivePutter(client, tube, **put_options).publish()

# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for the reactive job streams."""

import asyncio
import threading

import reactivex as rx

from pystalk import (
    AsyncReactiveWorker,
    ReactivePutter,
    ReactiveWorker,
    WorkerConfig,
    from_worker,
    to_putter,
)
from pystalk.exceptions import JobTooBigError

FAST = WorkerConfig(reserve_timeout=0)


class TestReactivePutter:
    """Tests for the put operators."""

    def test_publish_emits_job_ids(self, fake_server) -> None:
        client, server = fake_server
        putter = ReactivePutter(client, "emails", ttr=30)
        ids = []
        completed = []

        rx.of(b"a", b"b", b"c").pipe(putter.publish()).subscribe(
            on_next=ids.append, on_completed=lambda: completed.append(True)
        )

        assert ids == [1, 2, 3]
        assert completed == [True]
        assert server.using == "emails"
        assert [ttr for _, _, ttr, _ in server.puts] == [30, 30, 30]

    def test_publish_forwards_errors(self, scripted) -> None:
        client, server = scripted
        server.sendall(b"JOB_TOO_BIG\r\n")
        errors = []

        rx.of(b"huge").pipe(to_putter(client)).subscribe(on_error=errors.append)

        assert len(errors) == 1
        assert isinstance(errors[0], JobTooBigError)

    def test_publish_batch(self, fake_server) -> None:
        client, _ = fake_server
        batches = []
        done = threading.Event()

        rx.of(b"1", b"2", b"3").pipe(
            ReactivePutter(client).publish_batch(batch_size=2, timeout_ms=5000)
        ).subscribe(on_next=batches.append, on_completed=done.set)

        assert done.wait(5)
        assert batches == [[1, 2], [3]]


class TestReactiveWorker:
    """Tests for the job sources."""

    def test_jobs_stream(self, fake_server) -> None:
        client, _ = fake_server
        client.put(b"first")
        client.put(b"second")

        received = []
        got_both = threading.Event()

        def on_next(job):
            received.append(job.body)
            if len(received) == 2:
                got_both.set()

        worker = ReactiveWorker(client, config=FAST)
        worker.jobs().subscribe(on_next=on_next)
        with worker:
            assert got_both.wait(5)

        assert received == [b"first", b"second"]

    def test_from_worker_starts_on_subscribe(self, fake_server) -> None:
        client, server = fake_server
        client.put(b"only")

        received = []
        got_one = threading.Event()

        def on_next(job):
            received.append(job)
            got_one.set()

        source = from_worker(client, "jobs", config=FAST)
        assert "reserve-with-timeout" not in server.commands

        subscription = source.subscribe(on_next=on_next)
        assert got_one.wait(5)
        subscription.dispose()
        assert received[0].body == b"only"


class TestAsyncReactiveWorker:
    """Tests for the asyncio job source."""

    def test_async_iteration(self, fake_server) -> None:
        client, _ = fake_server
        client.put(b"async job")

        async def main():
            async with AsyncReactiveWorker(client, config=FAST) as worker:
                async for job in worker:
                    return job

        job = asyncio.run(main())
        assert job.body == b"async job"

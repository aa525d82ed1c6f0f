# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for the Worker loop."""

import logging

import pytest

from pystalk import FailureAction, PystalkError, Worker, WorkerConfig

FAST = WorkerConfig(reserve_timeout=0)


class TestWorkerSetup:
    """Tests for tube selection."""

    def test_watches_tubes_and_ignores_default(self, fake_server) -> None:
        client, server = fake_server
        worker = Worker(client, ["emails", "images"], config=FAST)
        assert server.watching == ["emails", "images"]
        assert worker.tubes == ["emails", "images"]

    def test_single_tube_name(self, fake_server) -> None:
        client, server = fake_server
        Worker(client, "emails", config=FAST)
        assert server.watching == ["emails"]

    def test_keep_default(self, fake_server) -> None:
        client, server = fake_server
        Worker(client, "emails", config=WorkerConfig(ignore_default=False))
        assert server.watching == ["default", "emails"]

    def test_no_tubes_keeps_watch_list(self, fake_server) -> None:
        client, server = fake_server
        Worker(client, config=FAST)
        assert server.watching == ["default"]
        assert server.commands == []


class TestWorkerReserve:
    """Tests for reserve and iteration."""

    def test_reserve_returns_none_on_timeout(self, fake_server) -> None:
        client, _ = fake_server
        worker = Worker(client, config=FAST)
        assert worker.reserve() is None

    def test_reserve_after_close(self, fake_server) -> None:
        client, _ = fake_server
        worker = Worker(client, config=FAST)
        worker.close()
        with pytest.raises(PystalkError, match="closed"):
            worker.reserve()

    def test_iteration(self, fake_server) -> None:
        client, _ = fake_server
        for body in (b"one", b"two"):
            client.put(body)

        received = []
        with Worker(client, config=FAST) as worker:
            for job in worker:
                received.append(job.body)
                client.delete(job)
                if len(received) == 2:
                    worker.close()
        assert received == [b"one", b"two"]

    def test_deadline_soon_is_skipped(self, scripted) -> None:
        client, server = scripted
        server.sendall(b"DEADLINE_SOON\r\nRESERVED 5 2\r\nok\r\n")
        worker = Worker(client, config=FAST)
        job = next(iter(worker))
        assert job.id == 5


class TestWorkerRun:
    """Tests for run()."""

    def test_deletes_handled_jobs(self, fake_server) -> None:
        client, server = fake_server
        ids = [client.put(f"job-{i}".encode()) for i in range(3)]

        handled = []
        processed = Worker(client, config=FAST).run(lambda job: handled.append(job.body), max_jobs=3)

        assert processed == 3
        assert handled == [b"job-0", b"job-1", b"job-2"]
        assert server.deleted == ids

    def test_buries_failed_jobs(self, fake_server) -> None:
        client, server = fake_server
        good = client.put(b"good")
        bad = client.put(b"bad")

        def handler(job):
            if job.body == b"bad":
                raise RuntimeError("cannot handle")

        Worker(client, config=FAST).run(handler, max_jobs=2)

        assert server.deleted == [good]
        assert list(server.buried) == [bad]

    def test_releases_failed_jobs(self, fake_server) -> None:
        client, server = fake_server
        job_id = client.put(b"flaky")
        config = WorkerConfig(reserve_timeout=0, failure_action=FailureAction.RELEASE)

        def handler(job):
            raise RuntimeError("try again")

        Worker(client, config=config).run(handler, max_jobs=1)

        assert [jid for jid, _ in server.ready] == [job_id]
        assert server.buried == {}

    def test_expired_job_does_not_stop_the_loop(self, scripted, caplog) -> None:
        """Test NOT_FOUND when settling a job whose TTR ran out is logged and skipped."""
        client, server = scripted
        server.sendall(
            b"RESERVED 1 1\r\na\r\nNOT_FOUND\r\n"
            b"RESERVED 2 1\r\nb\r\nNOT_FOUND\r\n"
            b"RESERVED 3 1\r\nc\r\nDELETED\r\n"
        )

        def handler(job):
            if job.body == b"b":
                raise RuntimeError("cannot handle")

        with caplog.at_level(logging.WARNING, logger="pystalk.consumer"):
            processed = Worker(client, config=FAST).run(handler, max_jobs=3)

        assert processed == 3
        assert "Job 1 is no longer reserved" in caplog.text
        assert "Job 2 is no longer reserved" in caplog.text

    def test_zero_max_jobs(self, fake_server) -> None:
        client, server = fake_server
        assert Worker(client, config=FAST).run(lambda job: None, max_jobs=0) == 0
        assert server.commands == []


class TestWorkerConfig:
    """Tests for WorkerConfig validation."""

    def test_defaults(self) -> None:
        config = WorkerConfig()
        assert config.reserve_timeout == 5
        assert config.failure_action is FailureAction.BURY
        assert config.failure_priority == 2**31

    def test_rejects_negative_timeout(self) -> None:
        with pytest.raises(ValueError):
            WorkerConfig(reserve_timeout=-1)

    def test_rejects_priority_overflow(self) -> None:
        with pytest.raises(ValueError):
            WorkerConfig(failure_priority=2**32)

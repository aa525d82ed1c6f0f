#!/usr/bin/env python3
"""
03_workers.py - pystalk Worker Loop and Reactive Streams Example

What this example demonstrates:
- Worker.run(): delete on success, bury or release on failure
- ReactivePutter: putting an Observable of bodies
- from_worker(): consuming jobs as an Observable stream

Prerequisites:
    - beanstalkd running on localhost:11300
    - reactivex installed (a pystalk dependency)

Run with:
    python 03_workers.py
"""

import json
import logging
import threading

import reactivex as rx
from reactivex import operators as ops

from pystalk import (
    FailureAction,
    ReactivePutter,
    Worker,
    WorkerConfig,
    connect,
    from_worker,
)


def send_email(job):
    message = json.loads(job.body)
    if "@" not in message["to"]:
        raise ValueError(f"invalid address: {message['to']}")
    print(f"  sent email to {message['to']}")


def worker_loop():
    print("\n=== Worker.run() ===")
    with connect() as client:
        client.use("emails")
        for to in ("a@example.com", "not-an-address", "b@example.com"):
            client.put(json.dumps({"to": to}).encode())

        config = WorkerConfig(reserve_timeout=1, failure_action=FailureAction.BURY)
        with Worker(client, "emails", config=config) as worker:
            processed = worker.run(send_email, max_jobs=3)
        print(f"✓ Processed {processed} jobs (the invalid one was buried)")


def reactive_streams():
    print("\n=== Reactive Streams ===")
    with connect() as producer, connect() as consumer:
        rx.of(*(f"image-{i}".encode() for i in range(5))).pipe(
            ReactivePutter(producer, "images").publish(),
        ).subscribe(on_next=lambda job_id: print(f"  queued job {job_id}"))

        done = threading.Event()
        seen = []

        def handle(job):
            consumer.delete(job)
            seen.append(job.id)
            if len(seen) == 5:
                done.set()

        subscription = from_worker(consumer, "images", config=WorkerConfig(reserve_timeout=1)).pipe(
            ops.do_action(lambda job: print(f"  got {job.decode()}")),
        ).subscribe(on_next=handle)
        done.wait(10)
        subscription.dispose()
        print(f"✓ Handled {len(seen)} jobs reactively")


def main():
    logging.basicConfig(level=logging.INFO)
    worker_loop()
    reactive_streams()


if __name__ == "__main__":
    main()

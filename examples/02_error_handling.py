#!/usr/bin/env python3
"""
02_error_handling.py - pystalk Error Handling Example

What this example demonstrates:
- Catching specific server errors (TimedOutError, NotFoundError)
- Using the is_not_found()/is_timed_out() predicates
- Releasing and burying jobs that could not be processed
- Recognising a connection that is no longer usable

Prerequisites:
    - beanstalkd running on localhost:11300

Run with:
    python 02_error_handling.py
"""

from pystalk import (
    ConnectionError,
    JobTooBigError,
    ServerError,
    TimedOutError,
    connect,
    is_not_found,
)


def main():
    with connect() as client:
        client.use("errors-demo")
        client.watch("errors-demo")
        client.ignore("default")

        # Nothing ready: reserve-with-timeout reports TIMED_OUT
        try:
            client.reserve_with_timeout(0)
        except TimedOutError:
            print("✓ No job ready (TIMED_OUT)")

        # Deleting a job that does not exist
        try:
            client.delete(999999999)
        except ServerError as e:
            if is_not_found(e):
                print(f"✓ Job not found: {e}")

        # Bodies larger than the server's max-job-size are refused
        try:
            client.put(b"x" * (1 << 21))
        except JobTooBigError as e:
            print(f"✓ Job too big:\n{e}")

        # A failing handler: retry once with a delay, then bury
        job_id = client.put(b"flaky work")
        job = client.reserve_with_timeout(1)
        client.release(job, delay=1)
        print(f"✓ Released job {job_id} with a 1 second delay")

        job = client.reserve_with_timeout(5)
        client.bury(job)
        print(f"✓ Buried job {job.id} for inspection")

    # A closed client refuses further commands
    try:
        client.stats()
    except ConnectionError as e:
        print(f"✓ Client closed: {e}")


if __name__ == "__main__":
    main()

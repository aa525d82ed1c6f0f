#!/usr/bin/env python3
"""
01_basic_put_reserve.py - pystalk Basic Put and Reserve Example

What this example demonstrates:
- Using connect() for one-liner connection
- Putting a job into a tube
- Reserving, inspecting and deleting a job
- Proper resource cleanup with context managers

Key Concepts:
- Tube: A named queue; use() selects where put() goes, watch() where reserve() looks
- TTR: Seconds a worker may hold a job before the server hands it out again
- Job ids are assigned by the server and returned by put()

Prerequisites:
    - beanstalkd running on localhost:11300 (default port)
    - pystalk installed: pip install pystalk

Expected Output:
    Connecting to beanstalkd at localhost:11300...
    ✓ Put job 1 into 'hello-world'
    Reserved job 1: Hello, beanstalkd!
    ✓ Deleted job 1

Run with:
    python 01_basic_put_reserve.py
"""

from pystalk import connect


def main():
    print("Connecting to beanstalkd at localhost:11300...")
    with connect("localhost", 11300) as client:
        # Producer side: select the tube and put a job
        client.use("hello-world")
        job_id = client.put(b"Hello, beanstalkd!", ttr=30)
        print(f"✓ Put job {job_id} into 'hello-world'")

        # Worker side: watch the same tube and reserve
        client.watch("hello-world")
        client.ignore("default")
        job = client.reserve_with_timeout(5)
        print(f"Reserved job {job.id}: {job.decode()}")

        client.delete(job)
        print(f"✓ Deleted job {job.id}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
04_encryption.py - pystalk Job Body Encryption Example

What this example demonstrates:
- Generating a 256-bit key
- Producers and workers sharing a key through ClientConfig
- The server only ever storing ciphertext

Prerequisites:
    - beanstalkd running on localhost:11300

Run with:
    python 04_encryption.py
"""

from pystalk import BeanstalkClient, ClientConfig, connect, generate_key


def main():
    key = generate_key()
    config = ClientConfig(encryption_enabled=True, encryption_key=key)

    with BeanstalkClient(config=config) as client:
        client.use("payments")
        job_id = client.put(b'{"card": "4111 1111 1111 1111"}')
        print(f"✓ Put encrypted job {job_id}")

    # A client without the key sees only the sealed bytes
    with connect() as plain:
        plain.watch("payments")
        plain.ignore("default")
        job = plain.reserve_with_timeout(5)
        print(f"Stored body ({len(job.body)} bytes): {job.body[:16].hex()}...")
        plain.release(job)

    with BeanstalkClient(config=config) as client:
        client.watch("payments")
        client.ignore("default")
        job = client.reserve_with_timeout(5)
        print(f"✓ Decrypted body: {job.decode()}")
        client.delete(job)


if __name__ == "__main__":
    main()

# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Shared fixtures: an in-process beanstalkd stand-in over socketpair()."""

import collections
import socket
import threading

import pytest

from pystalk import BeanstalkClient


class FakeBeanstalkd(threading.Thread):
    """Answers the subset of the protocol the client speaks, one command at a time."""

    def __init__(self, sock: socket.socket) -> None:
        super().__init__(daemon=True)
        self._file = sock.makefile("rwb")
        self.ready: collections.deque[tuple[int, bytes]] = collections.deque()
        self.reserved: dict[int, bytes] = {}
        self.buried: dict[int, bytes] = {}
        self.deleted: list[int] = []
        self.puts: list[tuple[int, int, int, bytes]] = []
        self.commands: list[str] = []
        self.using = "default"
        self.watching = ["default"]
        self._next_id = 1

    def run(self) -> None:
        try:
            while True:
                line = self._file.readline()
                if not line:
                    return
                self._file.write(self.handle(line))
                self._file.flush()
        except (OSError, ValueError):
            return

    def handle(self, line: bytes) -> bytes:
        if not line.endswith(b"\r\n"):
            return b"EXPECTED_CRLF\r\n"
        verb, *args = line[:-2].decode("ascii").split(" ")
        self.commands.append(verb)

        if verb == "put":
            priority, delay, ttr, size = (int(a) for a in args)
            frame = self._file.read(size + 2)
            if frame[-2:] != b"\r\n":
                return b"EXPECTED_CRLF\r\n"
            body = frame[:-2]
            job_id = self._next_id
            self._next_id += 1
            self.puts.append((priority, delay, ttr, body))
            self.ready.append((job_id, body))
            return f"INSERTED {job_id}\r\n".encode()

        if verb in ("reserve", "reserve-with-timeout"):
            if not self.ready:
                return b"TIMED_OUT\r\n"
            job_id, body = self.ready.popleft()
            self.reserved[job_id] = body
            return f"RESERVED {job_id} {len(body)}\r\n".encode() + body + b"\r\n"

        if verb == "delete":
            job_id = int(args[0])
            if self.reserved.pop(job_id, None) is None:
                return b"NOT_FOUND\r\n"
            self.deleted.append(job_id)
            return b"DELETED\r\n"

        if verb == "release":
            job_id = int(args[0])
            body = self.reserved.pop(job_id, None)
            if body is None:
                return b"NOT_FOUND\r\n"
            self.ready.append((job_id, body))
            return b"RELEASED\r\n"

        if verb == "bury":
            job_id = int(args[0])
            body = self.reserved.pop(job_id, None)
            if body is None:
                return b"NOT_FOUND\r\n"
            self.buried[job_id] = body
            return b"BURIED\r\n"

        if verb == "use":
            self.using = args[0]
            return f"USING {self.using}\r\n".encode()

        if verb == "watch":
            if args[0] not in self.watching:
                self.watching.append(args[0])
            return f"WATCHING {len(self.watching)}\r\n".encode()

        if verb == "ignore":
            if self.watching == [args[0]]:
                return b"NOT_IGNORED\r\n"
            if args[0] in self.watching:
                self.watching.remove(args[0])
            return f"WATCHING {len(self.watching)}\r\n".encode()

        if verb == "stats":
            body = (
                "---\n"
                f"current-jobs-ready: {len(self.ready)}\n"
                f"current-jobs-reserved: {len(self.reserved)}\n"
                f"current-jobs-buried: {len(self.buried)}\n"
                "draining: false\n"
                "version: \"1.13\"\n"
            ).encode()
            return f"OK {len(body)}\r\n".encode() + body + b"\r\n"

        return b"UNKNOWN_COMMAND\r\n"


@pytest.fixture
def fake_server():
    """A client connected to a FakeBeanstalkd; yields (client, server)."""
    client_sock, server_sock = socket.socketpair()
    server = FakeBeanstalkd(server_sock)
    server.start()
    client = BeanstalkClient.from_socket(client_sock, socket_timeout_ms=5000)
    yield client, server
    client.close()
    server.join(timeout=2)
    server_sock.close()


@pytest.fixture
def scripted():
    """A client whose replies are written by the test; yields (client, peer socket)."""
    client_sock, server_sock = socket.socketpair()
    server_sock.settimeout(2)
    client = BeanstalkClient.from_socket(client_sock, socket_timeout_ms=2000)
    yield client, server_sock
    client.close()
    server_sock.close()


def receive(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes the client wrote, or what arrives before EOF."""
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data

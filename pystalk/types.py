# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Type definitions for the pystalk client."""

from __future__ import annotations

from dataclasses import dataclass

# Defaults applied by put/release/bury when no value is given.
DEFAULT_PORT: int = 11300
DEFAULT_PRIORITY: int = 2**31
DEFAULT_DELAY: int = 0
DEFAULT_TTR: int = 60
DEFAULT_TUBE: str = "default"


@dataclass(frozen=True)
class Job:
    """A job handed out by reserve."""

    id: int
    body: bytes

    def decode(self, encoding: str = "utf-8") -> str:
        """Decode the job body as a string."""
        return self.body.decode(encoding)


JobRef = Job | int


def job_id(job: JobRef) -> int:
    """Return the id of a Job, or the id itself."""
    return job.id if isinstance(job, Job) else job

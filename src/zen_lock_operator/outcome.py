"""Results of a single reconcile pass."""

from __future__ import annotations

import dataclasses
from typing import Union


@dataclasses.dataclass(frozen=True)
class Done:
    """Nothing more to do until the resource changes again."""


@dataclasses.dataclass(frozen=True)
class RequeueAfter:
    """Ask for the pass to run again after ``delay`` seconds."""

    delay: float = 0.0

    @property
    def immediate(self) -> bool:
        return self.delay <= 0


@dataclasses.dataclass(frozen=True)
class Failed:
    """The pass hit an error it could not resolve; it is retried with backoff."""

    error: BaseException


ReconcileOutcome = Union[Done, RequeueAfter, Failed]

DONE = Done()
REQUEUE_NOW = RequeueAfter(0.0)

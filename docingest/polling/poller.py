"""Bounded polling for long-running remote operations.

The loop is split into a pure transition function, ``step``, and a thin
driver, ``Poller``, that owns the clock and the sleep. Both remote waiters
(document analysis and compute sessions) share it, so both get the same two
guarantees: a hard ceiling that always terminates the loop, and unknown states
counted as still pending.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from docingest.logging.logger import Log


class PollPhase(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


class Outcome(str, Enum):
    """Classification of one observed remote status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds: float
    max_attempts: int | None = None
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts is None and self.timeout_seconds is None:
            raise ValueError("PollPolicy needs max_attempts or timeout_seconds")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")


@dataclass(frozen=True)
class PollState:
    phase: PollPhase
    attempt: int
    deadline: float | None
    status: str | None = None
    payload: Any = None

    @property
    def done(self) -> bool:
        return self.phase is not PollPhase.PENDING


@dataclass(frozen=True)
class Observation:
    outcome: Outcome
    status: str | None
    payload: Any


def start(policy: PollPolicy, now: float) -> PollState:
    deadline = now + policy.timeout_seconds if policy.timeout_seconds is not None else None
    return PollState(phase=PollPhase.PENDING, attempt=0, deadline=deadline)


def step(
    state: PollState, observation: Observation, now: float, policy: PollPolicy
) -> PollState:
    """Advance ``state`` by one observed poll result.

    A terminal classification always wins over the ceilings, so a result that
    arrives on the last permitted attempt is still reported.
    """
    if state.done:
        return state
    attempt = state.attempt + 1
    advanced = replace(state, attempt=attempt, status=observation.status, payload=observation.payload)
    if observation.outcome is Outcome.SUCCEEDED:
        return replace(advanced, phase=PollPhase.SUCCEEDED)
    if observation.outcome is Outcome.FAILED:
        return replace(advanced, phase=PollPhase.FAILED)
    if policy.max_attempts is not None and attempt >= policy.max_attempts:
        return replace(advanced, phase=PollPhase.EXHAUSTED)
    if state.deadline is not None and now >= state.deadline:
        return replace(advanced, phase=PollPhase.EXHAUSTED)
    return advanced


class Poller:
    """Drives ``step`` with a real (or injected) clock and sleep."""

    def __init__(
        self,
        policy: PollPolicy,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._policy = policy
        self._clock = clock
        self._sleep = sleep

    @property
    def policy(self) -> PollPolicy:
        return self._policy

    def run(
        self,
        fetch: Callable[[], Any],
        classify: Callable[[Any], tuple[Outcome, str | None]],
        *,
        transient: Callable[[Exception], bool] | None = None,
    ) -> PollState:
        """Poll until a terminal outcome or a ceiling is reached.

        ``fetch`` returns the raw status payload; ``classify`` maps it to an
        outcome plus the status label used for logs and error messages.
        An exception from ``fetch`` accepted by ``transient`` counts as one
        pending attempt and keeps the last observed status; any other
        exception propagates.
        """
        state = start(self._policy, self._clock())
        while True:
            try:
                payload = fetch()
            except Exception as exc:
                if transient is None or not transient(exc):
                    raise
                Log.warning(f"Status poll failed, retrying: {exc}", attempt=state.attempt + 1)
                observation = Observation(Outcome.PENDING, state.status, state.payload)
            else:
                outcome, status = classify(payload)
                observation = Observation(outcome, status, payload)
            state = step(state, observation, self._clock(), self._policy)
            if state.done:
                return state
            self._sleep(self._policy.interval_seconds)

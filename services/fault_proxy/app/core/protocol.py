from __future__ import annotations
from dataclasses import dataclass, field
from .state import RequestState

S = RequestState

_ALLOWED: dict[RequestState, frozenset[RequestState]] = {
    S.RECEIVED: frozenset({S.PLAN_BUILT}),
    S.PLAN_BUILT: frozenset({S.GATE_FAILED, S.GATE_PASSED}),
    S.GATE_FAILED: frozenset({S.COMPOSED, S.FORWARD_ERROR}),
    S.GATE_PASSED: frozenset({S.FORWARDED, S.FORWARD_ERROR}),
    S.FORWARDED: frozenset({S.COMPOSED}),
    S.FORWARD_ERROR: frozenset({S.COMPOSED}),
    S.COMPOSED: frozenset({S.SENT}),
    S.SENT: frozenset(),
}


@dataclass
class RequestLifecycle:
    """Per-request state; never shared between requests."""

    state: RequestState = RequestState.RECEIVED
    history: list[RequestState] = field(default_factory=lambda: [RequestState.RECEIVED])

    def advance(self, to: RequestState) -> None:
        if to not in _ALLOWED[self.state]:
            raise ValueError(f"Invalid transition: {self.state.value} -> {to.value}")
        self.state = to
        self.history.append(to)

    def plan_built(self) -> None:
        self.advance(S.PLAN_BUILT)

    def gate(self, passed: bool) -> None:
        self.advance(S.GATE_PASSED if passed else S.GATE_FAILED)

    def forwarded(self) -> None:
        self.advance(S.FORWARDED)

    def forward_error(self) -> None:
        self.advance(S.FORWARD_ERROR)

    def composed(self) -> None:
        self.advance(S.COMPOSED)

    def sent(self) -> None:
        self.advance(S.SENT)

    @property
    def reached_forwarding(self) -> bool:
        return S.FORWARDED in self.history

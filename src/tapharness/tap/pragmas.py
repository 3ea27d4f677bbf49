# src/tapharness/tap/pragmas.py

"""
Pragma registry for TAP version 13 streams.

A pragma line toggles a named parser behavior for the rest of the current
run. The toggles live on a PragmaState context object instead of module
globals; the value each toggle had before the first run is captured lazily
and restored by `reset()` at the start of every run.
"""

from collections.abc import Callable
from enum import Enum, auto
from typing import TYPE_CHECKING

import structlog
from attrs import define, field, mutable

from tapharness.telemetry import StructLogger

if TYPE_CHECKING:
    from tapharness.state import TestSet

log: StructLogger = structlog.get_logger("tap.pragmas")


class PragmaSwitch(Enum):
    """State transitions a pragma handler can be asked to perform."""

    RESET = auto()
    ON = auto()
    OFF = auto()


@mutable(slots=True)
class PragmaState:
    """
    Toggles controlled by pragmas for one run.

    `strict` enforces TAP syntax more tightly; `blocking_read`
    makes the line reader wait indefinitely for output.
    """

    strict: bool = field(default=False)
    blocking_read: bool = field(default=False)
    _baseline: dict[str, bool] = field(factory=dict, init=False, repr=False)

    def switch(self, name: str, state: PragmaSwitch) -> None:
        """Applies an on/off/reset transition to the toggle called `name`."""
        # Remember the pre-suite value the first time the toggle is touched.
        if name not in self._baseline:
            self._baseline[name] = getattr(self, name)
        if state == PragmaSwitch.RESET:
            setattr(self, name, self._baseline[name])
        else:
            setattr(self, name, state == PragmaSwitch.ON)

    def reset(self, registry: "PragmaRegistry | None" = None) -> None:
        """Restores every registered toggle to its pre-suite value."""
        for pragma in registry or PRAGMAS:
            pragma.handle(self, PragmaSwitch.RESET)


PragmaHandler = Callable[[PragmaState, PragmaSwitch], None]
PragmaCheck = Callable[[str, "TestSet", PragmaState], bool]


def handle_strict(pragmas: PragmaState, state: PragmaSwitch) -> None:
    pragmas.switch("strict", state)


def handle_readblock(pragmas: PragmaState, state: PragmaSwitch) -> None:
    pragmas.switch("blocking_read", state)


@define(frozen=True, slots=True)
class Pragma:
    """
    A capability record in the registry.

    `check`, when present, may claim ownership of any non-pragma line; a
    claimed line is not processed further by the parser.
    """

    name: str
    handler: PragmaHandler | None = field(default=None)
    check: PragmaCheck | None = field(default=None)

    def handle(self, pragmas: PragmaState, state: PragmaSwitch) -> None:
        if self.handler is None:
            return
        log.debug("Pragma switched", pragma=self.name, state=state.name)
        self.handler(pragmas, state)

    def claims(self, line: str, ts: "TestSet", pragmas: PragmaState) -> bool:
        return self.check is not None and self.check(line, ts, pragmas)


@define(frozen=True, slots=True)
class PragmaRegistry:
    """Fixed, ordered set of known pragmas."""

    pragmas: tuple[Pragma, ...] = field(converter=tuple)

    def __iter__(self):
        return iter(self.pragmas)

    def lookup(self, name: str) -> Pragma | None:
        for pragma in self.pragmas:
            if pragma.name == name:
                return pragma
        return None

    def claims(self, line: str, ts: "TestSet", pragmas: PragmaState) -> bool:
        """True if any registered pragma takes ownership of the line."""
        return any(pragma.claims(line, ts, pragmas) for pragma in self.pragmas)


PRAGMAS = PragmaRegistry(
    [
        Pragma("strict", handle_strict),
        Pragma("readblock", handle_readblock),
    ]
)

# 🔼⚙️

"""Session capability used by journeys to drive the remote target.

A Session is one isolated interaction context (its own cookies and current
page). It is exclusively owned by one journey and closed when that journey
ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol


class Action(str, Enum):
    """Interaction performed on a located element."""

    CLICK = "click"
    SET_TEXT = "set_text"
    READ = "read"


class ConditionKind(str, Enum):
    """State an element must reach for a wait to succeed.

    present: the element exists in the current document
    visible: present and not hidden
    clickable: visible and not disabled
    """

    PRESENT = "present"
    VISIBLE = "visible"
    CLICKABLE = "clickable"


class WaitResult(str, Enum):
    """Result of a wait. ABSENT is only returned for optional waits."""

    PRESENT = "present"
    ABSENT = "absent"


@dataclass(frozen=True)
class Locator:
    """CSS selector identifying an element on the current page."""

    selector: str

    @staticmethod
    def css(selector: str) -> "Locator":
        return Locator(selector)

    @staticmethod
    def by_id(element_id: str) -> "Locator":
        return Locator(f"#{element_id}")

    @staticmethod
    def by_name(name: str) -> "Locator":
        return Locator(f"[name='{name}']")

    def __str__(self) -> str:
        return self.selector


@dataclass(frozen=True)
class Condition:
    kind: ConditionKind
    locator: Locator

    @staticmethod
    def present(locator: Locator) -> "Condition":
        return Condition(ConditionKind.PRESENT, locator)

    @staticmethod
    def visible(locator: Locator) -> "Condition":
        return Condition(ConditionKind.VISIBLE, locator)

    @staticmethod
    def clickable(locator: Locator) -> "Condition":
        return Condition(ConditionKind.CLICKABLE, locator)

    def __str__(self) -> str:
        return f"{self.kind.value}({self.locator.selector})"


class Session(Protocol):
    async def open(self) -> None:
        """Start the interaction context. Raises SessionError on failure."""
        ...

    async def navigate(self, url: str) -> None: ...

    async def wait_for(
        self,
        condition: Condition,
        timeout: float,
        *,
        required: bool = True,
    ) -> WaitResult:
        """Block until ``condition`` holds or ``timeout`` seconds elapse.

        Raises WaitTimeoutError when unmet and ``required``; otherwise
        returns WaitResult.ABSENT.
        """
        ...

    async def interact(
        self,
        locator: Locator,
        action: Action,
        text: str | None = None,
    ) -> str | None: ...

    def location_and_content(self) -> tuple[str, str]: ...

    async def close(self) -> None:
        """Release the context. Safe to call repeatedly and after failures."""
        ...


# Called with the instance label of the journey that will own the session.
SessionFactory = Callable[[str], Session]

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

ItemT = TypeVar("ItemT")
ValueT = TypeVar("ValueT")


@dataclass
class Digest:
    """Lines collected during one tick, in worklist order.

    Status lines are informational and only logged. Alert lines are sent to
    humans on every channel.
    """

    status_lines: list[str] = field(default_factory=list)
    alert_lines: list[str] = field(default_factory=list)

    def add_status(self, line: str) -> None:
        self.status_lines.append(line)

    def add_alert(self, line: str) -> None:
        self.alert_lines.append(line)

    @property
    def has_alerts(self) -> bool:
        return bool(self.alert_lines)

    def email_body(self) -> str:
        return "\n".join(self.alert_lines)

    def webhook_text(self) -> str:
        # MessageCard markdown needs a blank line to break paragraphs.
        return "\n\n".join(self.alert_lines)


@dataclass(frozen=True)
class ItemOutcome(Generic[ItemT, ValueT]):
    """Result of probing one worklist item: either a value or an error."""

    item: ItemT
    value: ValueT | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    body: str
    html: bool = True
    tags: dict[str, str] = field(default_factory=dict)


@dataclass
class EmailSendResult:
    status: str
    error: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status == "sent"


class EmailSender(Protocol):
    def send(self, message: OutgoingEmail) -> EmailSendResult:
        ...


def mask_address(address: str) -> str:
    local, _, domain = (address or "").partition("@")
    if not domain:
        return "****"
    visible = local[:2] if len(local) > 2 else local[:1]
    return f"{visible}***@{domain}"

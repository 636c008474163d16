"""
Per-deletion confirmation.

The engine asks a :class:`ConfirmationPort` before each deletion when the
operator runs with ``--confirm``. The console implementation prompts with
Rich; tests plug in scripted ports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from rich.console import Console
from rich.prompt import Prompt


class ConfirmationChoice(Enum):
    """Operator answer to a deletion prompt."""

    ACCEPT = "accept"
    SKIP = "skip"
    ABORT_REMAINING = "abort"


class ConfirmationPort(ABC):
    """Asks whether a resource may be deleted."""

    @abstractmethod
    def ask(self, resource_name: str) -> ConfirmationChoice:
        """Return the operator's choice for ``resource_name``."""


class AutoConfirm(ConfirmationPort):
    """Accepts every deletion (the default when ``--confirm`` is off)."""

    def ask(self, resource_name: str) -> ConfirmationChoice:
        return ConfirmationChoice.ACCEPT


class RichConfirmationPort(ConfirmationPort):
    """
    Console prompt: ``y`` deletes, ``n`` skips, ``a`` aborts the rest.

    Parameters
    ----------
    console : Console, optional
        Rich Console to prompt on.
    """

    CHOICES = {
        "y": ConfirmationChoice.ACCEPT,
        "n": ConfirmationChoice.SKIP,
        "a": ConfirmationChoice.ABORT_REMAINING,
    }

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def ask(self, resource_name: str) -> ConfirmationChoice:
        answer = Prompt.ask(
            f"[yellow]Delete {resource_name}?[/yellow] "
            "[dim](y = delete, n = skip, a = abort remaining)[/dim]",
            choices=list(self.CHOICES),
            default="n",
            console=self.console,
        )
        return self.CHOICES[answer]

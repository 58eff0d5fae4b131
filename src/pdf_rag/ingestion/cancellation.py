"""Cooperative cancellation for long-running ingestion runs."""

from __future__ import annotations

import threading

from pdf_rag.exceptions import PipelineCancelled


class CancellationToken:
    """Thin wrapper around :class:`threading.Event`.

    Stages check the token *between* units of work (files, batches), so an
    in-flight batch always completes or fails on its own.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise PipelineCancelled(
                f"Run cancelled ({self.reason})" + (f" before {where}" if where else ""),
                {"reason": self.reason},
            )

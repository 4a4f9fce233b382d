"""Operator-facing notices raised by queue actions and generation."""

from __future__ import annotations

from typing import List

from pagecss.models.summary import Notice, NoticeLevel
from pagecss.services.summary_store import SummaryStore

LACK_OF_QUOTA = "You don't have enough quota left to generate CSS. Please try again later."
QUEUE_CLEARED = "Queue cleared successfully."


class SummaryNotices:
    """Notice buffer kept in the persisted summary.

    Workers and API processes share one summary file, so a notice raised by
    a Celery drain is visible to whichever API process serves the admin UI.
    """

    def __init__(self, summary: SummaryStore) -> None:
        self._summary = summary

    def _add(self, level: NoticeLevel, message: str) -> None:
        self._summary.state.notices.append(Notice(level=level, message=message))
        self._summary.persist()

    def succeed(self, message: str) -> None:
        self._add(NoticeLevel.success, message)

    def error(self, message: str) -> None:
        self._add(NoticeLevel.error, message)

    def drain(self) -> List[Notice]:
        notices = list(self._summary.state.notices)
        if notices:
            self._summary.state.notices.clear()
            self._summary.persist()
        return notices

    def peek(self) -> List[Notice]:
        return list(self._summary.state.notices)

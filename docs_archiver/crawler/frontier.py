"""
Crawl frontier: the queue of page URLs still to visit.

Claiming is synchronous, so under asyncio two workers can never hold the
same target.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, Iterator, Optional

from ..utils.paths import normalize_url


class TargetState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlTarget:
    url: str
    normalized_url: str
    state: TargetState = TargetState.PENDING
    error: Optional[str] = None


def _unlimited(budget: Optional[int]) -> bool:
    return budget is None or budget < 0


class Frontier:
    """
    Pending, in-progress and finished page targets, keyed by normalized URL.

    Failed targets count as processed for the page budget.
    """

    def __init__(self, max_pages: Optional[int] = None):
        """
        Args:
            max_pages: Page budget; None or negative means unlimited
        """
        self.max_pages = max_pages
        self._targets: Dict[str, CrawlTarget] = {}
        self._pending: Deque[CrawlTarget] = deque()
        self._in_progress = 0
        self._processed = 0

    def enqueue(self, url: str) -> bool:
        """
        Add a URL unless a target for its normalized form already exists.

        Returns:
            True if a new pending target was created
        """
        normalized = normalize_url(url)
        if not normalized or normalized in self._targets:
            return False

        target = CrawlTarget(url=url, normalized_url=normalized)
        self._targets[normalized] = target
        self._pending.append(target)
        return True

    def claim_next(self) -> Optional[CrawlTarget]:
        """
        Remove and return the next pending target.

        Returns:
            The claimed target, or None when nothing is pending or the
            budget is already taken by processed and in-flight targets
        """
        if not self._pending or self.budget_claimed:
            return None

        target = self._pending.popleft()
        target.state = TargetState.IN_PROGRESS
        self._in_progress += 1
        return target

    def complete(self, target: CrawlTarget) -> None:
        self._finish(target, TargetState.DONE)

    def fail(self, target: CrawlTarget, error: str) -> None:
        target.error = error
        self._finish(target, TargetState.FAILED)

    def _finish(self, target: CrawlTarget, state: TargetState) -> None:
        if target.state is not TargetState.IN_PROGRESS:
            raise ValueError(f"Target not in progress: {target.normalized_url}")
        target.state = state
        self._in_progress -= 1
        self._processed += 1

    def is_exhausted(self, budget: Optional[int] = None) -> bool:
        """
        Check whether crawling should stop.

        Args:
            budget: Page budget; defaults to the frontier's own

        Returns:
            True when nothing is pending or the processed count reached
            the budget
        """
        if budget is None:
            budget = self.max_pages
        if not _unlimited(budget) and self._processed >= budget:
            return True
        return not self._pending

    @property
    def budget_claimed(self) -> bool:
        if _unlimited(self.max_pages):
            return False
        return self._processed + self._in_progress >= self.max_pages

    def is_seen(self, url: str) -> bool:
        return normalize_url(url) in self._targets

    def get(self, url: str) -> Optional[CrawlTarget]:
        return self._targets.get(normalize_url(url))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_progress_count(self) -> int:
        return self._in_progress

    @property
    def processed_count(self) -> int:
        return self._processed

    def __iter__(self) -> Iterator[CrawlTarget]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

# File: tests/test_frontier.py
import pytest

from docs_archiver.crawler.frontier import Frontier, TargetState


def test_enqueue_deduplicates_normalized_urls():
    frontier = Frontier()
    assert frontier.enqueue("https://docs.example.com/guide")
    assert not frontier.enqueue("https://docs.example.com/guide/")
    assert not frontier.enqueue("https://DOCS.example.com/guide#intro")
    assert not frontier.enqueue("mailto:team@example.com")
    assert len(frontier) == 1
    assert frontier.is_seen("https://docs.example.com/guide/#x")


def test_claim_in_discovery_order():
    frontier = Frontier()
    for path in ("a", "b", "c"):
        frontier.enqueue(f"https://docs.example.com/{path}")

    first = frontier.claim_next()
    second = frontier.claim_next()

    assert first.normalized_url == "https://docs.example.com/a"
    assert second.normalized_url == "https://docs.example.com/b"
    assert first.state is TargetState.IN_PROGRESS
    assert frontier.in_progress_count == 2
    assert frontier.pending_count == 1


def test_complete_and_fail_count_as_processed():
    frontier = Frontier()
    frontier.enqueue("https://docs.example.com/a")
    frontier.enqueue("https://docs.example.com/b")

    a = frontier.claim_next()
    b = frontier.claim_next()
    frontier.complete(a)
    frontier.fail(b, "HTTP 500")

    assert a.state is TargetState.DONE
    assert b.state is TargetState.FAILED
    assert b.error == "HTTP 500"
    assert frontier.processed_count == 2
    assert frontier.in_progress_count == 0
    assert frontier.is_exhausted()


def test_finishing_unclaimed_target_is_an_error():
    frontier = Frontier()
    frontier.enqueue("https://docs.example.com/a")
    target = frontier.get("https://docs.example.com/a")

    with pytest.raises(ValueError):
        frontier.complete(target)


def test_budget_limits_claims_including_in_flight():
    frontier = Frontier(max_pages=2)
    for i in range(5):
        frontier.enqueue(f"https://docs.example.com/p{i}")

    first = frontier.claim_next()
    second = frontier.claim_next()

    assert frontier.budget_claimed
    assert frontier.claim_next() is None

    frontier.complete(first)
    frontier.fail(second, "timeout")

    assert frontier.claim_next() is None
    assert frontier.is_exhausted()
    assert frontier.pending_count == 3


def test_is_exhausted_with_explicit_budget():
    frontier = Frontier()
    frontier.enqueue("https://docs.example.com/a")
    frontier.enqueue("https://docs.example.com/b")

    frontier.complete(frontier.claim_next())

    assert frontier.is_exhausted(budget=1)
    assert not frontier.is_exhausted(budget=2)
    assert not frontier.is_exhausted(budget=-1)


@pytest.mark.parametrize("budget", [None, -1])
def test_unlimited_budget(budget):
    frontier = Frontier(max_pages=budget)
    for i in range(50):
        frontier.enqueue(f"https://docs.example.com/p{i}")

    claimed = 0
    while True:
        target = frontier.claim_next()
        if target is None:
            break
        frontier.complete(target)
        claimed += 1

    assert claimed == 50
    assert not frontier.budget_claimed
    assert frontier.is_exhausted()

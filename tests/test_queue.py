"""Tests for the generation queue and its persisted summary."""

from __future__ import annotations

from pagecss.models.job import ArtifactType, GenerationJob
from pagecss.models.summary import HISTORY_LIMIT
from pagecss.services.queue import GenerationQueue
from pagecss.services.summary_store import SummaryStore


def _job(key: str, url: str = "https://example.test/a") -> GenerationJob:
    return GenerationJob(queue_key=key, page_key=url, request_url=url)


class TestGenerationQueue:
    def test_enqueue_is_idempotent(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))

        queue.enqueue(ArtifactType.critical, _job(" page", "https://example.test/old"))
        queue.enqueue(ArtifactType.critical, _job(" page", "https://example.test/new"))

        jobs = queue.peek_all(ArtifactType.critical)
        assert len(jobs) == 1
        assert jobs[0].request_url == "https://example.test/new"

    def test_queues_are_separate_per_type(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))

        queue.enqueue(ArtifactType.critical, _job("a"))

        assert queue.size(ArtifactType.critical) == 1
        assert queue.size(ArtifactType.unused) == 0

    def test_peek_all_keeps_insertion_order(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))
        for key in ("c", "a", "b"):
            queue.enqueue(ArtifactType.unused, _job(key))

        assert [job.queue_key for job in queue.peek_all(ArtifactType.unused)] == ["c", "a", "b"]

    def test_dequeue_moves_job_into_history(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))
        queue.enqueue(ArtifactType.critical, _job("k", "https://example.test/k"))

        job = queue.dequeue(ArtifactType.critical, "k")

        assert job is not None and job.queue_key == "k"
        assert queue.size(ArtifactType.critical) == 0
        assert queue.history(ArtifactType.critical) == {"k": "https://example.test/k"}

    def test_history_is_bounded(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))
        keys = [f"key-{i}" for i in range(25)]
        for key in keys:
            queue.enqueue(ArtifactType.critical, _job(key))
        for key in keys:
            queue.dequeue(ArtifactType.critical, key)
            assert len(queue.history(ArtifactType.critical)) <= HISTORY_LIMIT

        assert list(queue.history(ArtifactType.critical)) == keys[-HISTORY_LIMIT:]

    def test_state_survives_reload(self, tmp_path):
        path = tmp_path / "summary.json"
        queue = GenerationQueue(SummaryStore(path))
        queue.enqueue(ArtifactType.critical, _job("a"))
        queue.enqueue(ArtifactType.critical, _job("b"))
        queue.dequeue(ArtifactType.critical, "a")

        reloaded = GenerationQueue(SummaryStore(path))

        assert [job.queue_key for job in reloaded.peek_all(ArtifactType.critical)] == ["b"]
        assert list(reloaded.history(ArtifactType.critical)) == ["a"]

    def test_clear(self, tmp_path):
        queue = GenerationQueue(SummaryStore(tmp_path / "summary.json"))

        assert queue.clear(ArtifactType.unused) is False

        queue.enqueue(ArtifactType.unused, _job("a"))
        assert queue.clear(ArtifactType.unused) is True
        assert queue.peek_all(ArtifactType.unused) == []


class TestSummaryStore:
    def test_corrupt_summary_starts_fresh(self, tmp_path):
        path = tmp_path / "summary.json"
        path.write_text("{not json", encoding="utf-8")

        store = SummaryStore(path)

        assert store.state.queue_ccss == {}

    def test_client_identity_is_truncated(self):
        job = GenerationJob(queue_key="k", client_identity="x" * 500)

        assert len(job.client_identity) == 200

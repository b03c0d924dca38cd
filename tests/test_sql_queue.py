"""Unit tests for the SQL-backed queue service."""

from datetime import timedelta

import pytest

from notify_worker.persistence import StatusHistoryRepository, close_database, get_session
from notify_worker.persistence import init_database
from notify_worker.work_queue import QueueError, QueueService, QueueUnavailableError, SqlQueueService
from tests.helpers import FakeClock, insert_job, load_job
from tests.helpers.factories import T0


@pytest.fixture
def test_database(tmp_path):
    """Setup test database with file storage."""
    init_database(f"sqlite:///{tmp_path / 'queue.db'}")
    yield
    close_database()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(test_database, clock):
    return SqlQueueService(clock=clock, promotion_limit=100, default_max_retries=3)


class TestEnqueueAndLease:
    """Tests for enqueue, dequeue and lease visibility."""

    def test_enqueue_creates_thin_message(self, queue):
        insert_job(id="jtd-1")

        lease_id = queue.enqueue("jtd-1")

        entries = queue.dequeue(10, 60)
        assert [e.lease_id for e in entries] == [lease_id]
        assert entries[0].job_id == "jtd-1"
        assert entries[0].payload["jtd_id"] == "jtd-1"
        assert entries[0].payload["tenant_id"] == "tenant-a"
        assert entries[0].payload["channel_code"] == "email"
        assert entries[0].read_count == 1

    def test_enqueue_twice_keeps_single_entry(self, queue):
        insert_job(id="jtd-1")

        assert queue.enqueue("jtd-1") is not None
        assert queue.enqueue("jtd-1") is None
        assert queue.metrics().queue_length == 1

    def test_enqueue_unknown_job_raises(self, queue):
        with pytest.raises(QueueError):
            queue.enqueue("missing")

    def test_leased_entry_hidden_until_visibility_timeout(self, queue, clock):
        """Two dequeues inside the window never both return an entry."""
        insert_job(id="jtd-1")
        queue.enqueue("jtd-1")

        first = queue.dequeue(10, 60)
        second = queue.dequeue(10, 60)

        assert len(first) == 1
        assert second == []

        clock.advance(59)
        assert queue.dequeue(10, 60) == []

        clock.advance(1)
        again = queue.dequeue(10, 60)
        assert [e.lease_id for e in again] == [first[0].lease_id]
        assert again[0].read_count == 2

    def test_delayed_entry_not_visible_before_delay(self, queue, clock):
        insert_job(id="jtd-1")
        queue.enqueue("jtd-1", delay_seconds=30)

        assert queue.dequeue(10, 60) == []
        clock.advance(30)
        assert len(queue.dequeue(10, 60)) == 1

    def test_dequeue_respects_batch_size_and_order(self, queue):
        for i in range(5):
            insert_job(id=f"jtd-{i}")
            queue.enqueue(f"jtd-{i}")

        batch = queue.dequeue(3, 60)

        assert [e.job_id for e in batch] == ["jtd-0", "jtd-1", "jtd-2"]
        assert [e.job_id for e in queue.dequeue(3, 60)] == ["jtd-3", "jtd-4"]

    def test_dequeue_zero_batch_returns_empty(self, queue):
        insert_job(id="jtd-1")
        queue.enqueue("jtd-1")
        assert queue.dequeue(0, 60) == []


class TestReleaseAndArchive:
    """Tests for settling leased entries."""

    def test_release_deletes_entry(self, queue, clock):
        insert_job(id="jtd-1")
        queue.enqueue("jtd-1")
        entry = queue.dequeue(10, 60)[0]

        queue.release_lease(entry.lease_id)

        clock.advance(120)
        assert queue.dequeue(10, 60) == []
        assert queue.metrics().queue_length == 0

    def test_release_missing_entry_is_noop(self, queue):
        queue.release_lease(12345)

    def test_archive_moves_entry_to_dead_letters(self, queue, clock):
        insert_job(id="jtd-1")
        queue.enqueue("jtd-1")
        entry = queue.dequeue(10, 60)[0]

        queue.archive_to_dead_letter(entry.lease_id, "provider down")

        metrics = queue.metrics()
        assert metrics.queue_length == 0
        assert metrics.dead_letters == 1

        record = queue.list_dead_letters()[0]
        assert record.original_msg_id == entry.lease_id
        assert record.job_id == "jtd-1"
        assert record.error_message == "provider down"
        assert record.message["jtd_id"] == "jtd-1"
        assert record.message["error_message"] == "provider down"
        assert record.archived_at == clock()

        clock.advance(120)
        assert queue.dequeue(10, 60) == []

    def test_archive_missing_entry_is_noop(self, queue):
        queue.archive_to_dead_letter(999, "gone")
        assert queue.metrics().dead_letters == 0


class TestPromoteScheduled:
    """Tests for promotion of due scheduled and retryable jobs."""

    def test_promotes_due_scheduled_job(self, queue, clock):
        insert_job(id="jtd-1", status_code="scheduled", scheduled_at=T0 - timedelta(minutes=1))

        assert queue.promote_scheduled() == 1

        job = load_job("jtd-1")
        assert job.status_code == "queued"
        assert job.previous_status_code == "scheduled"
        assert job.status_changed_at == clock()
        assert [e.job_id for e in queue.dequeue(10, 60)] == ["jtd-1"]

        with get_session() as session:
            history = StatusHistoryRepository(session).list_for_job("jtd-1")
        assert [(h.from_status_code, h.to_status_code, h.performed_by) for h in history] == [
            ("scheduled", "queued", "promoter")
        ]

    def test_skips_future_scheduled_job(self, queue):
        insert_job(id="jtd-1", status_code="scheduled", scheduled_at=T0 + timedelta(minutes=5))

        assert queue.promote_scheduled() == 0
        assert load_job("jtd-1").status_code == "scheduled"

    def test_second_promotion_is_noop(self, queue):
        insert_job(id="jtd-1", status_code="scheduled", scheduled_at=T0)

        assert queue.promote_scheduled() == 1
        assert queue.promote_scheduled() == 0
        assert queue.metrics().queue_length == 1

    def test_existing_entry_not_duplicated(self, queue):
        """The unique job_id constraint makes promotion idempotent."""
        insert_job(id="jtd-1", status_code="scheduled", scheduled_at=T0)
        queue.enqueue("jtd-1")

        assert queue.promote_scheduled() == 0
        assert queue.metrics().queue_length == 1

    def test_promotes_failed_job_due_for_retry(self, queue):
        insert_job(
            id="jtd-1",
            status_code="failed",
            retry_count=1,
            max_retries=3,
            next_retry_at=T0 - timedelta(seconds=1),
        )

        assert queue.promote_scheduled() == 1

        job = load_job("jtd-1")
        assert job.status_code == "queued"
        assert job.next_retry_at is None
        assert job.retry_count == 1

    def test_exhausted_failed_job_never_promoted(self, queue):
        insert_job(
            id="jtd-1",
            status_code="failed",
            retry_count=3,
            max_retries=3,
            next_retry_at=T0 - timedelta(seconds=1),
        )

        assert queue.promote_scheduled() == 0

    def test_default_budget_applies_when_job_has_none(self, queue):
        insert_job(
            id="jtd-1",
            status_code="failed",
            retry_count=3,
            max_retries=None,
            next_retry_at=T0 - timedelta(seconds=1),
        )

        assert queue.promote_scheduled() == 0

    def test_retry_not_due_yet(self, queue):
        insert_job(
            id="jtd-1",
            status_code="failed",
            retry_count=1,
            next_retry_at=T0 + timedelta(minutes=2),
        )

        assert queue.promote_scheduled() == 0

    def test_tenant_scope(self, queue):
        insert_job(id="jtd-a", tenant_id="tenant-a", status_code="scheduled", scheduled_at=T0)
        insert_job(id="jtd-b", tenant_id="tenant-b", status_code="scheduled", scheduled_at=T0)

        assert queue.promote_scheduled(tenant_id="tenant-b") == 1
        assert load_job("jtd-a").status_code == "scheduled"
        assert load_job("jtd-b").status_code == "queued"

    def test_promotion_limit_prefers_priority(self, test_database, clock):
        queue = SqlQueueService(clock=clock, promotion_limit=1)
        insert_job(id="low", priority=1, status_code="scheduled", scheduled_at=T0)
        insert_job(id="high", priority=9, status_code="scheduled", scheduled_at=T0)

        assert queue.promote_scheduled() == 1
        assert load_job("high").status_code == "queued"
        assert load_job("low").status_code == "scheduled"


class TestQueueAvailability:
    """Tests for store failures surfacing as QueueUnavailableError."""

    def test_uninitialized_store_raises_queue_unavailable(self):
        close_database()
        queue = SqlQueueService()

        with pytest.raises(QueueUnavailableError):
            queue.dequeue(10, 60)

        with pytest.raises(QueueUnavailableError):
            queue.promote_scheduled()

    def test_metrics_counts_in_flight(self, queue):
        for i in range(3):
            insert_job(id=f"jtd-{i}")
            queue.enqueue(f"jtd-{i}")

        queue.dequeue(2, 60)
        metrics = queue.metrics()

        assert metrics.queue_length == 3
        assert metrics.visible == 1
        assert metrics.in_flight == 2
        assert metrics.dead_letters == 0


class TestQueueServiceContract:
    """Tests for the abstract queue contract."""

    def test_subclass_must_implement_metrics_and_dead_letters(self):
        class PartialQueue(QueueService):
            def dequeue(self, batch_size, visibility_timeout):
                return []

            def release_lease(self, lease_id):
                pass

            def archive_to_dead_letter(self, lease_id, error_message):
                pass

            def promote_scheduled(self, tenant_id=None):
                return 0

            def enqueue(self, job_id, delay_seconds=0):
                return None

        with pytest.raises(TypeError, match="list_dead_letters|metrics"):
            PartialQueue()

    def test_sql_queue_implements_full_contract(self):
        assert isinstance(SqlQueueService(), QueueService)

"""Tests for the bounded worker pool scheduler."""

import threading

import pytest

from catalog_extractor.extraction import (
    PageOutcome,
    PageWorker,
    RunFatalError,
    Scheduler,
    get_instructions,
)

from conftest import FakeDocument, FakeStatusError, ScriptedClient


@pytest.fixture
def generic():
    return get_instructions("generic")


def make_scheduler(client, fast_retry, concurrency_limit=2) -> Scheduler:
    return Scheduler(PageWorker(client, retry_policy=fast_retry), concurrency_limit=concurrency_limit)


class TestSchedulerInit:
    def test_rejects_zero_concurrency(self, fast_retry):
        with pytest.raises(ValueError, match="concurrency_limit must be >= 1"):
            make_scheduler(ScriptedClient(), fast_retry, concurrency_limit=0)


class TestSchedulerRun:
    def test_all_pages_succeed(self, generic, fast_retry):
        """5 pages, limit 2, one record each -> 5 ordered records, final progress 5/5."""
        client = ScriptedClient()
        progress = []

        result = make_scheduler(client, fast_retry).run(
            FakeDocument(5), generic, on_progress=progress.append
        )

        assert len(result.records) == 5
        assert [r.page_number for r in result.records] == [1, 2, 3, 4, 5]
        assert progress[-1].completed_pages == 5
        assert progress[-1].total_pages == 5
        assert result.total_pages == 5
        assert result.brand == "generic"
        assert sorted(client.calls) == [0, 1, 2, 3, 4]

    def test_records_ordered_regardless_of_completion_order(self, generic, fast_retry):
        # Later pages finish first
        client = ScriptedClient(delays={0: 0.15, 1: 0.10, 2: 0.05, 3: 0.0})
        completion_order = []

        result = make_scheduler(client, fast_retry, concurrency_limit=4).run(
            FakeDocument(4),
            generic,
            on_records=lambda page, records: completion_order.append(page),
        )

        assert completion_order != sorted(completion_order)
        page_numbers = [r.page_number for r in result.records]
        assert page_numbers == sorted(page_numbers)
        assert page_numbers == [1, 2, 3, 4]

    def test_one_bad_page_does_not_abort_run(self, generic, fast_retry):
        """Page 2 returns non-JSON; pages 1, 3, 4, 5 still produce records."""
        client = ScriptedClient(scripts={1: ["this is not json"]})

        result = make_scheduler(client, fast_retry).run(FakeDocument(5), generic)

        assert [r.page_number for r in result.records] == [1, 3, 4, 5]
        page_two = result.outcomes[1]
        assert page_two.page_number == 2
        assert page_two.failed is True
        assert page_two.records == []
        assert result.summary.pages_failed == 1
        assert result.summary.pages_with_records == 4

    def test_rasterization_and_inference_failures_isolated(self, generic, fast_retry):
        client = ScriptedClient(scripts={3: [FakeStatusError(400, "invalid argument")]})
        document = FakeDocument(5, broken_pages={0})

        result = make_scheduler(client, fast_retry).run(document, generic)

        assert [r.page_number for r in result.records] == [2, 3, 5]
        assert [o.failed for o in result.outcomes] == [True, False, False, True, False]

    def test_rate_limited_page_recovers(self, generic, fast_retry, recording_sleep):
        """Page 3 is rate limited twice, then succeeds."""
        client = ScriptedClient(
            scripts={2: [FakeStatusError(429), FakeStatusError(429), '[{"code": "X", "name": "Y", "regularPrice": 1}]']}
        )

        result = make_scheduler(client, fast_retry).run(FakeDocument(5), generic)

        assert result.outcomes[2].failed is False
        assert result.outcomes[2].records[0].code == "X"
        assert recording_sleep.delays == [1.0, 2.0]
        assert len(result.records) == 5

    def test_concurrency_limit_respected(self, generic, fast_retry):
        client = ScriptedClient(default_delay=0.03)

        make_scheduler(client, fast_retry, concurrency_limit=3).run(FakeDocument(10), generic)

        assert client.max_in_flight <= 3
        assert client.max_in_flight > 1
        assert len(client.calls) == 10

    def test_concurrency_of_one_is_sequential(self, generic, fast_retry):
        client = ScriptedClient(default_delay=0.01)

        make_scheduler(client, fast_retry, concurrency_limit=1).run(FakeDocument(4), generic)

        assert client.max_in_flight == 1
        assert client.calls == [0, 1, 2, 3]

    def test_progress_is_monotonic_and_completes_once(self, generic, fast_retry):
        client = ScriptedClient(delays={0: 0.05, 2: 0.02})
        progress = []

        make_scheduler(client, fast_retry, concurrency_limit=3).run(
            FakeDocument(6), generic, on_progress=progress.append
        )

        values = [p.completed_pages for p in progress]
        assert values == [1, 2, 3, 4, 5, 6]
        assert values.count(6) == 1

    def test_brand_and_campaign_stamped(self, fast_retry):
        natura = get_instructions("natura")
        result = make_scheduler(ScriptedClient(), fast_retry).run(
            FakeDocument(2), natura, campaign="202509"
        )

        assert {r.brand for r in result.records} == {"Natura"}
        assert {r.campaign for r in result.records} == {"202509"}

    def test_explicit_brand_overrides_default(self, generic, fast_retry):
        result = make_scheduler(ScriptedClient(), fast_retry).run(
            FakeDocument(1), generic, brand="Cyzone"
        )
        assert result.records[0].brand == "Cyzone"
        assert result.records[0].campaign == "N/A"


class TestSchedulerFatal:
    def test_zero_pages_is_fatal(self, generic, fast_retry):
        client = ScriptedClient()
        progress = []

        with pytest.raises(RunFatalError, match="no pages"):
            make_scheduler(client, fast_retry).run(
                FakeDocument(0), generic, on_progress=progress.append
            )

        assert client.calls == []
        assert progress == []


class TestSchedulerCancellation:
    def test_cancel_before_start_dispatches_nothing(self, generic, fast_retry):
        client = ScriptedClient()
        cancel = threading.Event()
        cancel.set()

        result = make_scheduler(client, fast_retry).run(
            FakeDocument(3), generic, cancel_event=cancel
        )

        assert client.calls == []
        assert result.cancelled is True
        assert result.outcomes == []
        assert result.skipped_pages == [1, 2, 3]

    def test_cancel_mid_run_keeps_completed_pages(self, generic, fast_retry):
        client = ScriptedClient()
        cancel = threading.Event()

        def on_progress(state):
            if state.completed_pages == 2:
                cancel.set()

        result = make_scheduler(client, fast_retry, concurrency_limit=1).run(
            FakeDocument(5), generic, on_progress=on_progress, cancel_event=cancel
        )

        assert result.cancelled is True
        assert [o.page_number for o in result.outcomes] == [1, 2]
        assert [r.page_number for r in result.records] == [1, 2]
        assert result.skipped_pages == [3, 4, 5]
        assert result.summary.pages_skipped == 3

    def test_cancel_after_last_dispatch_is_not_cancelled(self, generic, fast_retry):
        cancel = threading.Event()

        def on_progress(state):
            if state.completed_pages == state.total_pages:
                cancel.set()

        result = make_scheduler(ScriptedClient(), fast_retry, concurrency_limit=1).run(
            FakeDocument(2), generic, on_progress=on_progress, cancel_event=cancel
        )

        assert result.cancelled is False
        assert result.skipped_pages == []


class TestWorkerCrash:
    def test_crashing_worker_becomes_failed_outcome(self, generic, fast_retry):
        class CrashingWorker(PageWorker):
            def run(self, document, task, instructions) -> PageOutcome:
                if task.page_index == 1:
                    raise RuntimeError("worker bug")
                return super().run(document, task, instructions)

        scheduler = Scheduler(CrashingWorker(ScriptedClient(), retry_policy=fast_retry), 2)
        result = scheduler.run(FakeDocument(3), generic)

        assert result.outcomes[1].failed is True
        assert "worker bug" in result.outcomes[1].error
        assert [r.page_number for r in result.records] == [1, 3]

"""Test the distribution pipeline"""

import threading
from unittest.mock import Mock

import pytest

from spot_relay.core.exceptions import LedgerError
from spot_relay.core.ledger import Ledger
from spot_relay.sync.pipeline import DistributionPipeline, Outcome


@pytest.fixture
def ledger(temp_dir):
    return Ledger(temp_dir / "published.txt")


@pytest.fixture
def scratch_dir(temp_dir):
    return temp_dir / "scratch"


@pytest.fixture
def pipeline(ledger, fake_acquirer, fake_publisher, scratch_dir):
    return DistributionPipeline(
        ledger=ledger,
        acquirer=fake_acquirer,
        publisher=fake_publisher,
        channel_id="@liked",
        scratch_dir=scratch_dir,
    )


class TestDistribute:
    """Test one item through the pipeline"""

    def test_publish_records_and_cleans_up(
        self, pipeline, ledger, fake_publisher, scratch_dir, item_factory
    ):
        item = item_factory("abc", title="Bohemian Rhapsody", artist="Queen")

        outcome = pipeline.distribute(item)

        assert outcome is Outcome.PUBLISHED
        assert fake_publisher.sent == [("@liked", "Bohemian Rhapsody", "Queen")]
        assert fake_publisher.sent_paths[0].name == "Queen - Bohemian Rhapsody.m4a"
        assert ledger.contains("abc")
        assert not fake_publisher.sent_paths[0].exists()
        assert list(scratch_dir.iterdir()) == []

    def test_already_ledgered_is_skipped_without_download(
        self, pipeline, ledger, fake_acquirer, fake_publisher, item_factory
    ):
        ledger.append("abc")

        outcome = pipeline.distribute(item_factory("abc"))

        assert outcome is Outcome.SKIPPED_ALREADY_LEDGERED
        assert fake_acquirer.resolved == []
        assert fake_publisher.sent == []

    def test_no_source_found(self, pipeline, ledger, fake_acquirer, fake_publisher, item_factory):
        fake_acquirer.not_found.add("abc")

        outcome = pipeline.distribute(item_factory("abc"))

        assert outcome is Outcome.SKIPPED_DOWNLOAD_FAILED
        assert fake_publisher.sent == []
        assert not ledger.contains("abc")

    def test_download_failure(
        self, pipeline, ledger, fake_acquirer, fake_publisher, scratch_dir, item_factory
    ):
        fake_acquirer.broken.add("abc")

        outcome = pipeline.distribute(item_factory("abc"))

        assert outcome is Outcome.SKIPPED_DOWNLOAD_FAILED
        assert fake_publisher.sent == []
        assert not ledger.contains("abc")
        assert list(scratch_dir.iterdir()) == []

    def test_unexpected_acquirer_error_is_contained(self, ledger, fake_publisher, scratch_dir, item_factory):
        acquirer = Mock()
        acquirer.resolve.side_effect = RuntimeError("boom")
        pipeline = DistributionPipeline(ledger, acquirer, fake_publisher, "@liked", scratch_dir)

        assert pipeline.distribute(item_factory("abc")) is Outcome.SKIPPED_DOWNLOAD_FAILED

    def test_publish_failure_keeps_file(
        self, pipeline, ledger, fake_acquirer, fake_publisher, scratch_dir, item_factory
    ):
        item = item_factory("abc", title="Bad Song")
        fake_publisher.failing.add("Bad Song")

        outcome = pipeline.distribute(item)

        assert outcome is Outcome.FAILED_PUBLISH
        assert not ledger.contains("abc")
        kept = list(scratch_dir.glob("*/*.m4a"))
        assert [p.name for p in kept] == ["Test Artist - Bad Song.m4a"]

    def test_ledger_append_failure_after_publish(
        self, fake_acquirer, fake_publisher, scratch_dir, item_factory
    ):
        """Published but unrecorded: still PUBLISHED, file kept"""
        ledger = Mock()
        ledger.contains.return_value = False
        ledger.append.side_effect = LedgerError("disk full")
        pipeline = DistributionPipeline(ledger, fake_acquirer, fake_publisher, "@liked", scratch_dir)

        outcome = pipeline.distribute(item_factory("abc"))

        assert outcome is Outcome.PUBLISHED
        assert len(fake_publisher.sent) == 1
        assert fake_publisher.sent_paths[0].exists()

    def test_ledger_read_failure_propagates(
        self, fake_acquirer, fake_publisher, scratch_dir, item_factory
    ):
        ledger = Mock()
        ledger.contains.side_effect = LedgerError("unreadable")
        pipeline = DistributionPipeline(ledger, fake_acquirer, fake_publisher, "@liked", scratch_dir)

        with pytest.raises(LedgerError):
            pipeline.distribute(item_factory("abc"))
        assert fake_acquirer.resolved == []


class TestDistributeAll:
    """Test batches of items"""

    def test_order_and_isolation(self, pipeline, fake_acquirer, fake_publisher, item_factory):
        """One failure never stops the rest; order is preserved"""
        items = [item_factory(x) for x in ["a", "b", "c"]]
        fake_acquirer.broken.add("b")

        results = pipeline.distribute_all(items)

        assert [(i.item_id, o) for i, o in results] == [
            ("a", Outcome.PUBLISHED),
            ("b", Outcome.SKIPPED_DOWNLOAD_FAILED),
            ("c", Outcome.PUBLISHED),
        ]
        assert [title for _, title, _ in fake_publisher.sent] == ["Song a", "Song c"]

    def test_empty_batch(self, pipeline):
        assert pipeline.distribute_all([]) == []

    def test_stops_between_items_on_shutdown(
        self, ledger, fake_acquirer, fake_publisher, scratch_dir, item_factory
    ):
        stop_event = threading.Event()
        pipeline = DistributionPipeline(
            ledger, fake_acquirer, fake_publisher, "@liked", scratch_dir, stop_event
        )
        original_send = fake_publisher.send_audio

        def send_then_stop(*args, **kwargs):
            stop_event.set()
            return original_send(*args, **kwargs)

        fake_publisher.send_audio = send_then_stop

        results = pipeline.distribute_all([item_factory("a"), item_factory("b")])

        assert [i.item_id for i, _ in results] == ["a"]
        assert not ledger.contains("b")


class TestOutcome:
    def test_is_failure(self):
        assert Outcome.SKIPPED_DOWNLOAD_FAILED.is_failure
        assert Outcome.FAILED_PUBLISH.is_failure
        assert not Outcome.PUBLISHED.is_failure
        assert not Outcome.SKIPPED_ALREADY_LEDGERED.is_failure

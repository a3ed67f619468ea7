"""Test the sync loop: cycles, failure policies and lifecycle"""

import dataclasses
import threading
from unittest.mock import Mock

import pytest

from spot_relay.core.credentials import CredentialStore
from spot_relay.core.exceptions import AuthError, AuthReason
from spot_relay.core.ledger import Ledger
from spot_relay.spotify.fetcher import RetryPolicy, SnapshotFetcher
from spot_relay.spotify.models import Snapshot
from spot_relay.sync.loop import LoopState, SyncLoop, SyncState
from spot_relay.sync.pipeline import DistributionPipeline, Outcome


class Harness:
    """A SyncLoop wired to in-memory fakes"""

    def __init__(self, temp_dir, catalog, acquirer, publisher, config):
        self.catalog = catalog
        self.acquirer = acquirer
        self.publisher = publisher
        self.stop_event = threading.Event()
        self.ledger = Ledger(temp_dir / "published.txt")
        self.credentials = CredentialStore(temp_dir / "spotify-token", catalog)
        fetcher = SnapshotFetcher(catalog, RetryPolicy(delay_seconds=0), stop_event=self.stop_event)
        pipeline = DistributionPipeline(
            self.ledger, acquirer, publisher, "@liked", temp_dir / "scratch", self.stop_event
        )
        self.loop = SyncLoop(self.credentials, fetcher, pipeline, config, self.stop_event)
        self.state = SyncState()

    def authorize(self):
        self.credentials.save("refresh-1")

    def cycle(self):
        return self.loop.run_cycle(self.state)

    @property
    def published_titles(self):
        return [title for _, title, _ in self.publisher.sent]


@pytest.fixture
def make_harness(temp_dir, fake_catalog, fake_acquirer, fake_publisher, sync_config):
    def factory(**config_overrides):
        config = dataclasses.replace(sync_config, **config_overrides)
        harness = Harness(temp_dir, fake_catalog, fake_acquirer, fake_publisher, config)
        harness.authorize()
        return harness
    return factory


class TestRunCycle:
    """Test single cycles"""

    def test_cold_start_distributes_history_in_like_order(self, make_harness):
        harness = make_harness()
        for track_id in ["X", "Y", "Z"]:
            harness.catalog.like(track_id, name=f"Song {track_id}")

        report = harness.cycle()

        assert harness.published_titles == ["Song X", "Song Y", "Song Z"]
        assert report.published == 3
        assert harness.state.previous.ids == {"X", "Y", "Z"}
        assert harness.state.cycles == 1

    def test_cold_start_skips_already_ledgered(self, make_harness):
        harness = make_harness()
        for track_id in ["X", "Y", "Z"]:
            harness.catalog.like(track_id, name=f"Song {track_id}")
        harness.ledger.append("X")

        harness.cycle()

        assert harness.published_titles == ["Song Y", "Song Z"]
        assert "X" not in harness.acquirer.resolved

    def test_new_like_is_published_once(self, make_harness):
        """No duplicate publish across cycles"""
        harness = make_harness()
        harness.catalog.like("A", name="Song A")
        harness.cycle()

        harness.catalog.like("B", name="Song B")
        harness.cycle()
        harness.cycle()

        assert harness.published_titles == ["Song A", "Song B"]

    def test_same_process_restart_does_not_republish(self, make_harness):
        """A fresh SyncState (restart) finds everything in the ledger"""
        harness = make_harness()
        harness.catalog.like("A", name="Song A")
        harness.cycle()

        harness.state = SyncState()
        report = harness.cycle()

        assert harness.published_titles == ["Song A"]
        assert [o for _, o in report.results] == [Outcome.SKIPPED_ALREADY_LEDGERED]

    def test_partial_failure_is_skipped_for_good_by_default(self, make_harness):
        harness = make_harness()
        harness.catalog.like("A", name="Song A")
        harness.cycle()

        harness.catalog.like("B", name="Song B")
        harness.catalog.like("C", name="Song C")
        harness.acquirer.broken.add("B")
        report = harness.cycle()

        assert harness.published_titles == ["Song A", "Song C"]
        assert report.failed == 1
        assert not harness.ledger.contains("B")
        assert {"B", "C"} <= harness.state.previous.ids

        # B is not offered again, even once it would succeed
        harness.acquirer.broken.clear()
        harness.cycle()
        assert harness.published_titles == ["Song A", "Song C"]

    def test_retry_failed_reoffers_failed_items(self, make_harness):
        harness = make_harness(retry_failed=True)
        harness.catalog.like("A", name="Song A")
        harness.publisher.failing.add("Song A")

        harness.cycle()
        assert "A" not in harness.state.previous.ids

        harness.publisher.failing.clear()
        harness.cycle()

        assert harness.published_titles == ["Song A"]
        assert harness.ledger.contains("A")

    def test_baseline_cold_start_publishes_nothing(self, make_harness):
        harness = make_harness(cold_start="baseline")
        harness.catalog.like("A", name="Song A")

        report = harness.cycle()

        assert report.baseline
        assert harness.published_titles == []
        assert harness.state.previous.ids == {"A"}

        harness.catalog.like("B", name="Song B")
        harness.cycle()
        assert harness.published_titles == ["Song B"]

    def test_unprocessed_items_are_reoffered(self, make_harness):
        """Items left out by a shutdown are removed from the previous snapshot"""
        harness = make_harness()
        harness.catalog.like("A", name="Song A")
        harness.catalog.like("B", name="Song B")
        original_send = harness.publisher.send_audio

        def send_then_stop(*args, **kwargs):
            harness.stop_event.set()
            return original_send(*args, **kwargs)

        harness.publisher.send_audio = send_then_stop

        report = harness.cycle()

        assert report.unprocessed == ("B",)
        assert harness.state.previous.ids == {"A"}

    def test_auth_failure_keeps_previous_snapshot(self, make_harness, item_factory):
        harness = make_harness()
        harness.catalog.reject_refresh = True
        harness.state.previous = Snapshot.of([item_factory("A")])

        with pytest.raises(AuthError):
            harness.cycle()

        assert harness.state.previous.ids == {"A"}
        assert harness.state.cycles == 0

    def test_missing_token_fails_cycle(self, temp_dir, fake_catalog, fake_acquirer, fake_publisher, sync_config):
        harness = Harness(temp_dir, fake_catalog, fake_acquirer, fake_publisher, sync_config)

        with pytest.raises(AuthError) as exc_info:
            harness.cycle()
        assert exc_info.value.reason is AuthReason.NO_TOKEN


class TestLifecycle:
    """Test states, threading and the run loop"""

    def _loop(self, sync_config, stop_event=None):
        credentials = Mock()
        fetcher = Mock()
        pipeline = Mock()
        return SyncLoop(credentials, fetcher, pipeline, sync_config, stop_event)

    def test_initial_state(self, sync_config):
        assert self._loop(sync_config).state is LoopState.IDLE

    def test_mark_authorizing(self, sync_config):
        loop = self._loop(sync_config)
        loop.mark_authorizing()

        assert loop.state is LoopState.AUTHORIZING

    def test_run_survives_failing_cycles(self, sync_config):
        """Errors back off and the loop keeps going until shutdown"""
        stop_event = threading.Event()
        loop = self._loop(sync_config, stop_event)
        calls = []

        def failing_cycle(state):
            calls.append(state)
            if len(calls) == 3:
                stop_event.set()
            raise RuntimeError("spotify is down")

        loop.run_cycle = failing_cycle
        loop.run()

        assert len(calls) == 3
        assert loop.state is LoopState.STOPPED

    def test_start_is_idempotent(self, sync_config):
        stop_event = threading.Event()
        loop = self._loop(sync_config, stop_event)
        started = threading.Event()
        release = threading.Event()

        def blocking_cycle(state):
            started.set()
            release.wait(5)
            stop_event.set()
            raise RuntimeError("done")

        loop.run_cycle = blocking_cycle

        assert loop.start() is True
        assert started.wait(5)
        assert loop.state is LoopState.CYCLING
        assert loop.start() is False

        release.set()
        loop.join(5)

        assert not loop.is_running
        assert loop.state is LoopState.STOPPED
        # STOPPED is terminal
        assert loop.start() is False

    def test_stop_sets_event(self, sync_config):
        stop_event = threading.Event()
        loop = self._loop(sync_config, stop_event)

        loop.stop()

        assert stop_event.is_set()

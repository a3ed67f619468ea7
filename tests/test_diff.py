"""Test snapshot diffing"""

from spot_relay.spotify.models import Snapshot
from spot_relay.sync.diff import diff


class TestDiff:
    def test_cold_start_returns_everything(self, item_factory):
        current = Snapshot.of([item_factory("a"), item_factory("b")])

        assert [i.item_id for i in diff(Snapshot.empty(), current)] == ["a", "b"]

    def test_new_items_in_current_order(self, item_factory):
        a, b, c, d = (item_factory(x) for x in "abcd")

        new = diff(Snapshot.of([a, b]), Snapshot.of([a, c, b, d]))

        assert [i.item_id for i in new] == ["c", "d"]

    def test_unliked_items_are_ignored(self, item_factory):
        a, b = item_factory("a"), item_factory("b")

        assert diff(Snapshot.of([a, b]), Snapshot.of([b])) == []

    def test_no_change(self, item_factory):
        snapshot = Snapshot.of([item_factory("a")])

        assert diff(snapshot, snapshot) == []

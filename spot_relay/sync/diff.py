"""
Snapshot diffing.
"""

from spot_relay.spotify.models import LikedItem, Snapshot


def diff(previous: Snapshot, current: Snapshot) -> list[LikedItem]:
    """
    Return the items of `current` whose id is not in `previous`.

    Order follows `current` (oldest-liked first). Items that disappeared
    from `current` (unliked songs) are ignored.

    Example:
        diff(Snapshot.of([a, b]), Snapshot.of([a, b, c]))  # [c]
        diff(Snapshot.empty(), Snapshot.of([a, b]))        # [a, b]
    """
    known = previous.ids
    return [item for item in current if item.item_id not in known]

"""
Sync engine for spot-relay.

    - diff: new items between two snapshots
    - pipeline: DistributionPipeline and Outcome
    - loop: SyncLoop, its LoopState and per-cycle CycleReport
"""

from spot_relay.sync.diff import diff
from spot_relay.sync.loop import CycleReport, LoopState, SyncLoop, SyncState
from spot_relay.sync.pipeline import DistributionPipeline, Outcome

__all__ = [
    "diff",
    "DistributionPipeline",
    "Outcome",
    "SyncLoop",
    "SyncState",
    "LoopState",
    "CycleReport",
]

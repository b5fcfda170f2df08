from .batch import JobResult
from .discovery_worker import DiscoveryResult, run_auto_discovery
from .snapshot_worker import SnapshotOrchestrator

__all__ = ["DiscoveryResult", "JobResult", "SnapshotOrchestrator", "run_auto_discovery"]

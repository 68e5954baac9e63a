from core.dedup import ClaimCache, ClaimResult, Direction, SuppressionGate
from core.monitor import CycleReport, Monitor
from core.multi_reconciler import MultiIncidentReconciler
from core.reconciler import IncidentReconciler, Notification, Reconciliation
from core.registry import ServiceRegistry
from core.scheduler import Scheduler
from core.store import FallbackStore, KeyValueStore, MemoryStore, SqliteStore, StoreError

__all__ = [
    "ClaimCache",
    "ClaimResult",
    "CycleReport",
    "Direction",
    "FallbackStore",
    "IncidentReconciler",
    "KeyValueStore",
    "MemoryStore",
    "Monitor",
    "MultiIncidentReconciler",
    "Notification",
    "Reconciliation",
    "Scheduler",
    "ServiceRegistry",
    "SqliteStore",
    "StoreError",
    "SuppressionGate",
]

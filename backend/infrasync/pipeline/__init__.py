# Pipeline module
# Edit events in, synthesized text out

from infrasync.pipeline.events import UpdateOrigin, TextUpdate, Diagnostic
from infrasync.pipeline.debounce import Debouncer
from infrasync.pipeline.context import SyncState
from infrasync.pipeline.controller import SyncController
from infrasync.pipeline.deploy import Deployer, DeployResult

__all__ = [
    "UpdateOrigin",
    "TextUpdate",
    "Diagnostic",
    "Debouncer",
    "SyncState",
    "SyncController",
    "Deployer",
    "DeployResult",
]

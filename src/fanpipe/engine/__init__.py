"""Execution engine: topology planning, process spawning and supervision.

Example:
    from fanpipe.core.config import load_settings
    from fanpipe.engine import Orchestrator

    result = Orchestrator(load_settings()).run("wc -l", query="SELECT * FROM events")
"""

from fanpipe.engine.fanin import FanInCollector
from fanpipe.engine.fanout import FanOutDistributor
from fanpipe.engine.orchestrator import Orchestrator
from fanpipe.engine.supervisor import ProcessGroup, Supervisor, TrackedProcess
from fanpipe.engine.topology import plan_topology
from fanpipe.engine.workers import WORKER_COUNT_ENV, WORKER_ID_ENV, WorkerPool

__all__ = [
    "WORKER_COUNT_ENV",
    "WORKER_ID_ENV",
    "FanInCollector",
    "FanOutDistributor",
    "Orchestrator",
    "ProcessGroup",
    "Supervisor",
    "TrackedProcess",
    "WorkerPool",
    "plan_topology",
]

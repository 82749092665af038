"""Services bridging remote task runs to client sinks."""

from features.research.services.event_relay import EventFeedRelay
from features.research.services.findall_client import FindAllClient
from features.research.services.jobs import JOBS, JobDescriptor, get_job
from features.research.services.orchestrator import StreamingOrchestrator
from features.research.services.polling import PollingStatusTracker
from features.research.services.sse_parser import SSEEventParser
from features.research.services.task_client import RemoteTaskClient

__all__ = [
    "EventFeedRelay",
    "FindAllClient",
    "JOBS",
    "JobDescriptor",
    "PollingStatusTracker",
    "RemoteTaskClient",
    "SSEEventParser",
    "StreamingOrchestrator",
    "get_job",
]

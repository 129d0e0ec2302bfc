"""Thread reconstruction: linear reply chains, bulk building, and classification."""

from mailrelay.threads.builder import build_threads
from mailrelay.threads.classifier import classify_batch
from mailrelay.threads.models import (
    AppendedToThread,
    ClassificationEvent,
    Membership,
    NewStandalone,
    NewThread,
    Thread,
    ThreadIndex,
)

__all__ = [
    "AppendedToThread",
    "ClassificationEvent",
    "Membership",
    "NewStandalone",
    "NewThread",
    "Thread",
    "ThreadIndex",
    "build_threads",
    "classify_batch",
]

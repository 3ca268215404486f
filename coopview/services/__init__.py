"""Collaborator protocols and reference implementations."""

from .memory import InMemoryOptionSource, InMemoryRecordSource
from .sources import ChangeNotifier, DeleteSink, OptionSource, RecordSource

__all__ = [
    "ChangeNotifier",
    "DeleteSink",
    "InMemoryOptionSource",
    "InMemoryRecordSource",
    "OptionSource",
    "RecordSource",
]

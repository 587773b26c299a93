"""Testing utilities for treestatelib consumers."""

from .fixtures import EventRecorder, RecordingRenderer, node_ids

__all__ = ['EventRecorder', 'RecordingRenderer', 'node_ids']

"""TaskSync - task-tracking backend for offline-first clients."""

__version__ = "0.1.0"

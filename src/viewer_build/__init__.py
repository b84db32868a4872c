"""Task-graph build orchestrator for the point cloud viewer."""

__version__ = "0.1.0"

"""Concrete viewer build pipeline: declarative tables and task set."""

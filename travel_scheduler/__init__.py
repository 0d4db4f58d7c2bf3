"""Timezone-aware notification scheduling and booking lifecycle jobs."""

__version__ = "0.1.0"

"""Adapters to the filesystem, the indexing service and watchdog."""

"""Adapters connecting the core to sinks, storage and web frameworks."""

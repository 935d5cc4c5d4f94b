"""Kernel services: stateful infrastructure backed by the session."""

"""Adapters implementing the core ports (git, stores, delivery channels)."""

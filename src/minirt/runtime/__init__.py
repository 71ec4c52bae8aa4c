# src/minirt/runtime/__init__.py
"""Dispatch contract, runtime composition and ambient plumbing (config, logging, counters)."""

# src/minirt/storage/__init__.py
"""Byte store, codec and typed storage items.

Keep this package import-safe: it must not import minirt.modules or the runtime composition.
"""

"""State/store layer.

This package owns the in-memory layer cache, the enabled-layer flags and
the host foreground/background state that gates refreshes.
"""

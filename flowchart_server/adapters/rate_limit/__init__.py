"""Rate limiting adapters.

Per-identity admission control. The in-memory limiter is per-process; a shared
store (e.g., Redis) can be added behind the same abstract interface.
"""

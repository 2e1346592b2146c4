"""
seedsync - keeps declared seed records in a key-value table in step with
orchestrator lifecycle events, without touching records other writers own.
"""

__version__ = "1.0.0"

"""
tokenvest Core Module

Core functionality for the vesting service including:
- Organization registry and whitelist tables
- Vesting schedule storage and the vesting engine
- Claim settlement against an external token ledger
- Notifications, metrics, persistence and the HTTP API
"""

__all__ = []

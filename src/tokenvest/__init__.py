"""
tokenvest - Organization Token Vesting Service

Tracks linear, time-based token vesting for organizations and their
stakeholders.

Main Components:
- Organization Registry: one organization per registering identity
- Whitelist: per-organization claim eligibility
- Vesting Schedules: linear release with cumulative claim tracking
- Token Ledger: external balance/allowance/transfer capability
- API and CLI: Flask HTTP surface and a click client for it
"""

__version__ = "0.1.0"
__author__ = "tokenvest Development Team"

__all__ = []

"""
Procurement reconciliation kernel.

Tracks ordered versus received quantities per purchase order line,
validates and confirms warehouse receipts, derives order status from the
receipt history, and keeps order and receipt totals consistent.
"""

__version__ = "0.1.0"

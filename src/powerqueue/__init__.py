"""
SDR power queue: prioritized call queue, lead directory and call-outcome ledger.
"""

__version__ = "0.1.0"

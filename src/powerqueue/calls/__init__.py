"""
Call ledger, statistics and call-block sessions.

NOTE:
This package __init__ MUST be lightweight.
Do NOT import SQLAlchemy models here, otherwise importing any submodule
(e.g. powerqueue.calls.block) triggers ORM mapping at import time.
"""

__all__: list[str] = []

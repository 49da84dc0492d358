"""
Queue prioritization: call windows, priority scores, manual order and the
materialized queue view.
"""

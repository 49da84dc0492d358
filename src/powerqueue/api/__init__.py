"""
HTTP surface over the per-operator PowerDialer.
"""

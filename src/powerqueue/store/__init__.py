"""
Per-operator document store with realtime snapshot subscriptions.
"""

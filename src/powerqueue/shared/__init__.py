"""
Shared infrastructure: logging, exceptions, database and notifications.
"""

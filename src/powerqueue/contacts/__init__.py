"""
Lead directory: contact records, validation and persistence.

NOTE: keep this lightweight; importing the ORM models here would map them
on every `import powerqueue.contacts.phone`.
"""

__all__: list[str] = []

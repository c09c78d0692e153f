# Schemas package init
"""
Pydantic request/response models. Kept separate from the ORM models so the
API contract can change without touching the database schema, and so
internal columns (password hashes, lockout state) never leak by accident.
"""

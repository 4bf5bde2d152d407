# backend/mystery_events/schemas/__init__.py
"""
Pydantic request and response schemas for the HTTP API.

Request models forbid unknown fields; response models are built from ORM
rows or service dataclasses with ``from_attributes``.
"""

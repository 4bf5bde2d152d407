# backend/mystery_events/tasks/__init__.py
"""Celery application and periodic sweeps."""

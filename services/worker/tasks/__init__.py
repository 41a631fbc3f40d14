"""Celery task definitions package."""

# Ensure task modules are imported so Celery can discover them
from . import publish_vault  # noqa: F401

"""
Celery background workers.

Provides background tasks for embedding, health refresh, index rebuilds and
opportunity staleness.

Usage:
    celery -A workers worker --loglevel=info
    celery -A workers worker -Q index --loglevel=info
    celery -A workers beat --loglevel=info
"""

from workers.celery_app import celery_app

__all__ = ["celery_app"]

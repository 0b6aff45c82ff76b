"""Celery worker that drives the job queue."""

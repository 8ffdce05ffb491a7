"""
Celery Tasks

Task modules are imported by the worker through celery_app.conf.imports.
"""

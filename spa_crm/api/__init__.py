"""
FastAPI backend: bulk import, job tracking, clients and documents.
"""

from .main import create_app

__all__ = ["create_app"]

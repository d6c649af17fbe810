"""
REST API for sensor state and broker configuration.
"""

from .routes import create_api_app

__all__ = ["create_api_app"]

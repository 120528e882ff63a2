"""
Dependency injection module.
"""

from .container import Container

__all__ = ["Container"]

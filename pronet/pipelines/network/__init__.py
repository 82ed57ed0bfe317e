"""
Network-call pipeline.
Finds network-call endpoints in a page's scripts, special files and live traffic.
"""

from .runner import NetworkRunner

__all__ = ["NetworkRunner"]

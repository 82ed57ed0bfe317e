"""
Content pipeline.
Finds post and article links in a single page's markup.
"""

from .runner import ContentRunner

__all__ = ["ContentRunner"]

"""mergeflow - resolve git merge conflicts hunk by hunk."""

__version__ = "0.1.0"

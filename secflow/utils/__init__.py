"""
Utility modules for the tool lifecycle and workflow engine.
"""

from .logging import setup_root_logger

__all__ = ["setup_root_logger"]

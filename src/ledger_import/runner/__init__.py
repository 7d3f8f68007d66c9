"""
CLI runner module.

Provides commands:
- init-config: Write a default configuration file
- preview: Detect, map and parse a spreadsheet without committing
- import: Commit the valid, non-duplicate rows of a spreadsheet
- status: Store statistics and recent import runs
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]

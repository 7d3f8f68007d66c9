"""
Spreadsheet readers.
"""

from .matrix_reader import MatrixReadError, read_matrix

__all__ = ["MatrixReadError", "read_matrix"]

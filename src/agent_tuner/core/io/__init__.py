"""Result output."""

from .result_writer import ResultWriter

__all__ = ["ResultWriter"]

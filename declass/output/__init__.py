"""
Declass Output Module
=====================

Console display for batch decompilation results.
"""

from declass.output.console import DecompilationConsoleOutput

__all__ = [
    "DecompilationConsoleOutput",
]

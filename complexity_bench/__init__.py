"""
Algorithm Complexity Benchmark.

Loads algorithm classes from Python source files, feeds their operations
generated inputs of growing size and records how time and memory scale.
"""

__version__ = "1.0.0"

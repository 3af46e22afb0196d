"""
sysgen: build-time generator for per-target syscall descriptions and the
executor's syscall tables.
"""

__version__ = "0.1.0"

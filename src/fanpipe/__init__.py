"""
fanpipe: run a command across parallel workers wired to SQL sources and sinks.

Rows unloaded from a relational source are fanned out over named pipes into
worker stdin; worker stdout is fanned back in and loaded into a relation.
"""

__version__ = "0.1.0"

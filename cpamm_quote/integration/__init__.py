"""
Snapshot loading, settings and command-line entry point
"""

"""
General helpers: BV identifier parsing, file names, JSON field access and formatting.
"""

"""
bilidown: a Bilibili video downloader for the command line.
"""

__version__ = "0.1.0"

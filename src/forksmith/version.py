"""
Central version constant for forksmith.
"""

__version__ = "0.4.0"

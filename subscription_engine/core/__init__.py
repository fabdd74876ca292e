"""
Core infrastructure: logging, clocks, exceptions and constants.
"""

"""
Test package.
"""

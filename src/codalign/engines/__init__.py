"""
Alignment and scoring engines.
"""

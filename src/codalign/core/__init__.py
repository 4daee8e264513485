"""
Symbols, sequences and translated views.
"""

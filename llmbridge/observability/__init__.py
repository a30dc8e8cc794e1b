"""
Observability — structured logging setup.
"""

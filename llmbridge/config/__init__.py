"""
Configuration — pydantic settings models and the YAML/env loader.
"""

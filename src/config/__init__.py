"""
Configuration loading and validation for settings.

Provides strongly typed settings objects for contract defaults, output paths,
and logging verbosity with upfront validation.
"""

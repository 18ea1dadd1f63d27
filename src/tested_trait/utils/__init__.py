"""
Utilities shared by the CLI and the library (console and logging setup).
"""

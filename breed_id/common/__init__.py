"""
Common utilities for the breed identification system.

Contains shared functionality used across all modules:
- Paths and constants
- Exception taxonomy
- Label table loading
- Configuration loading
"""

"""
Concurrency primitives for background enrichment.

Contains:
- Result values for tasks that can fail
- Bounded-retry job execution on a worker pool
"""

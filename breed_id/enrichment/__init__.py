"""
Background enrichment of ranked breeds.

Contains:
- Wikipedia text-info source
- dog.ceo sample image source
- Coordinator fanning out retry jobs per breed
"""

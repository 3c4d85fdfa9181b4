"""
Application Layer - use cases built on the domain entities.

Subpackages:
- content: text analysis and content extraction
- search: query generation/refinement, scoring, deduplication, filters
- feedback: feedback history and preference learning
- optimizer: caches, background tasks, progressive loading
- pipeline: the end-to-end SearchWorkflow
"""

"""
Results Aggregator

Stores analysis reports produced for clusters, serves them over a REST API
guarded by identity-based authorization, and keeps its relational schema
versioned with a forward/backward migration engine.
"""

__version__ = "0.1.0"

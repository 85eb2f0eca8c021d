"""
Core utilities: domain exceptions and cross-cutting concerns shared by the
address validation, anchoring, statistics, and API server layers.
"""

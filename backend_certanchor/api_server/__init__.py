"""
API server package: HTTP interface over the anchoring engine.

Thin routes: request models validate shape, the engine does the work, and
domain errors map to HTTP status codes in one place.
"""

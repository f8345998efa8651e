"""Manual damage review backend following Clean Architecture.

Layers:
- domain: damage entities, the review workflow and its use cases
- data: in-memory damage store, seed and image loaders
- presentation: FastAPI routers and the server-side annotation canvas
- core: configuration, DI, and utilities
"""

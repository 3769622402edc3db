"""
Response cache service package.

The cache sits in the request pipeline as ASGI middleware and memoizes
response bodies of a configured content type for a bounded TTL:

- app.caching: orchestration middleware and key suppliers.
- app.stores: store contract plus in-memory and Redis backends.
- app.main: demo FastAPI service wiring the cache from settings.
"""

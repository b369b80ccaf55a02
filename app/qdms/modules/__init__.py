"""
Engine components live under this package.

Each module owns its models, repository functions, input parsing, service and routes,
while reusing platform primitives (auth, RBAC, audit, DB session) from app.qdms.
"""

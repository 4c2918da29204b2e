"""
Feature modules live under this package.

Each module owns its routes and services while reusing the platform primitives
(auth, RBAC, audit, DB session, deprecation headers).
"""

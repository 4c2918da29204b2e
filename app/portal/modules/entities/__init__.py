"""
Entities module: tenant-scoped people records.

- /api/admin/entities/clients: legacy client CRUD, deprecated in favour of /api/admin/users
- /api/admin/users: unified listing, filterable by role
"""

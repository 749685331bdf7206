"""
HTTP surface for the CRUD layer: identity resolution, mint confirmation,
ownership audits and read-only lookups.
"""

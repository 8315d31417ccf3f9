"""People directory -- users, roles and departments.

Users arrive from the identity provider; this package stores their role,
department and reporting line, which every access check depends on.
"""

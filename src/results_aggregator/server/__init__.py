"""
REST API (Django).

Thin JSON layer over the storage. Requests to protected endpoints carry an
identity (x-rh-identity header, or a bearer JWT in debug mode) that the
authentication middleware attaches to the request before the view runs.
"""

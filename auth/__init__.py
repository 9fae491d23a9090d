"""auth/ -- Credential and session-authorization package for the storefront.

Layer rule: auth/ imports only stdlib + third-party libraries (fastapi only in
auth/dependencies.py). It does NOT import from api/ or core/.
api/ imports from auth/, not the other way around.
"""

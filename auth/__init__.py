"""auth/ -- Credential authentication core for AuthGate.

Layer rule: auth/ imports only stdlib + third-party libraries (and itself).
It does NOT import from api/ or core/; configuration is passed in.
api/ imports from auth/, not the other way around.
"""

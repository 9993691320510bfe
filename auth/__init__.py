"""auth/ -- Registration, login, token issuance and revocation for mentorauth.

Layer rule: auth/ imports only stdlib + third-party libraries (and core/).
It does NOT import from api/ or cache/. Revocation talks to its TTL store
through the structural TTLStore protocol, so any backend in cache/ fits.
api/ imports from auth/, not the other way around.
"""

"""auth/ -- Session issuance, storage, renewal, and route gating for sessiongate.

Layer rule: auth/ imports only stdlib + third-party libraries (and core/ for
settings where noted). It does NOT import from api/, web/, or client/.
api/, web/ and client/ import from auth/, not the other way around.
"""

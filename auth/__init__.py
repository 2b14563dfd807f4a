"""auth/ -- Authentication and token-issuance core for authgate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Configuration values arrive through
constructor arguments; api/ builds the collaborators and injects them.
"""

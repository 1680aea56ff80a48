"""auth/ -- Token issuance, session binding and role gates for the Devices API.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and (for
annotations) inventory/. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""

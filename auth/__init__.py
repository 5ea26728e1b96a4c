"""auth/ -- Account-authentication core.

Password hashing, session / reset token issuance and validation, the user
directory contract, and the AuthenticationService that ties them together.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
main.py imports from auth/, not the other way around.
"""

"""auth/ -- Authentication, identity records and authorization for the Usuarios API.

Layer rule: auth/ imports from core/ (config, errors, cpf) and third-party
libraries only. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""

"""auth/ -- Credential verification and token lifecycle for tokengate.

Components, leaf-first: ports/store/memory (persistence), passwords (bcrypt),
tokens (issuer), registry (refresh tokens), gate (access token check),
service (orchestration), dependencies (FastAPI glue).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or posts/.
"""

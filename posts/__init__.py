"""posts/ -- Posts resource. Reads are public; writes require a verified
principal and are restricted to the post's author.

Layer rule: posts/ may import auth.models (for VerifiedPrincipal) and auth.store
helpers, never api/.
"""

"""api/ -- HTTP surface: FastAPI app, transport models and routers."""

"""HTTP surface — dashboard, API and ping routes."""

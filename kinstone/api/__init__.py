"""HTTP surface — FastAPI routers and global error handlers."""

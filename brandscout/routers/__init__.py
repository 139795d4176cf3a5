"""Package for API routers.

The `include_router` calls in `main.py` collect them into the application.
"""

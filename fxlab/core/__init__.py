"""Core effects primitives (task queue, dispatcher, executor, surfaces, notifications).

Kept free of FastAPI concerns so it can be driven by API routes, scripts, and tests.
"""

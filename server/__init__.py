"""
Server modules for the club placement application.

This package contains the placement session, the club directory client,
marker synchronisation, SSE broadcasting and the FastAPI routes.
"""

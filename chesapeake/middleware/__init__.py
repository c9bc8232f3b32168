"""
Middleware package.
"""
from chesapeake.middleware.error_handler import ErrorHandlerMiddleware
from chesapeake.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
]

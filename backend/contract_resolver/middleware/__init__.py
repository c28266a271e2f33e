"""中间件模块"""
from .logging_middleware import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]

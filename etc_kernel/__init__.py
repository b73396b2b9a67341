"""
ETC Kernel - shared foundation for the toll-record system.

Provides:
- Structured JSON logging with request-scoped context
- Typed exception taxonomy with machine-readable codes
- Injectable clock and cancellation context
- SQLAlchemy declarative base, engine wiring and the transactional gateway contract
"""

__version__ = "0.1.0"

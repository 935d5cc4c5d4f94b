"""
Labor Kernel - shared infrastructure for the labor-event reporting engine.

Provides:
- Declarative ORM base and engine/session management
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Injectable clocks and workflow value objects
- Locked sequence counters, canonical hashing and business keys
"""

__version__ = "0.1.0"

"""
Payroll Kernel

Shared foundation for the payroll engine:
- Fixed-point Money arithmetic with explicit rounding
- Typed, coded exception hierarchy
- Structured JSON logging
- SQLAlchemy base, session scope and immutability listeners
"""

__version__ = "0.1.0"

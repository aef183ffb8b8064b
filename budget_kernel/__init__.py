"""
Budget Kernel.

Shared infrastructure for the operating-expense budget engine: an
injectable clock, the typed exception hierarchy, structured JSON logging
and the SQLAlchemy persistence base.  Nothing in the kernel knows about
budget items; ``budget_engines`` and ``budget_modules`` build on it.
"""

__version__ = "0.1.0"

"""Desk Analytics - agent and department performance views over Zoho Desk tickets."""

__version__ = "0.1.0"

"""
Rester - declarative REST request runner

Parses request definitions, resolves layered variables, executes requests
with retry policy, checks assertions and chains extracted values between
requests.
"""

__version__ = "0.1.0"

"""
Rester Core

Configuration, exceptions, logging and HTTP-level models.
"""

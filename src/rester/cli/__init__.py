"""Rester command line interface."""

"""Adapters implementing the loading ports."""

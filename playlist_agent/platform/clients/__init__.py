"""Downstream service clients."""

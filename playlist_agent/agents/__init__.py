"""Agents hosted by the service."""

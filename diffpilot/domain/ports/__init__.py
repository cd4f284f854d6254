"""Ports - interfaces to external collaborators."""

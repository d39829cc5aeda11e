"""Appointment scheduling core for a small clinic."""

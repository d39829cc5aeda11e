"""Slot, availability and cancellation rules."""

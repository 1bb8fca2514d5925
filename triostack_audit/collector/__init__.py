"""Receiving sink for audit events: stores, lists and clears them."""

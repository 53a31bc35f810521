"""Subscription services."""

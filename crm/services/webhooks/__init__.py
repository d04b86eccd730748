"""Inbound webhook payload transformers."""

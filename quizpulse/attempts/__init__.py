"""Attempt lifecycle: creation, answer recording, bulk submission."""

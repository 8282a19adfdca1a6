"""Shared scheduling, persistence and identity code for the community space services."""

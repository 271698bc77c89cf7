"""Shared plumbing: configuration, logging, errors, timers."""

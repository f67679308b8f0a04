"""Utility modules for logging, subprocess execution, HTTP and prompting."""

"""Command-line commands that manage devotion's configuration."""

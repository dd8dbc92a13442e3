"""Command-line tools for auditing hybrid-joined devices."""

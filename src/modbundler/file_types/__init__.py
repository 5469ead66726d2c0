"""On-disk text formats."""

"""Runtime catalog inspection gateway."""

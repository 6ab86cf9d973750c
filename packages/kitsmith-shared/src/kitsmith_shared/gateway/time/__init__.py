"""Time abstraction so that timeouts and timestamps are testable."""

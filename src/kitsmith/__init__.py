"""kitsmith: build queue and kit dependency graph manager."""

KITSMITH_VERSION = "0.1.0"

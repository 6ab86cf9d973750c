"""Gateways and shared helpers for kitsmith."""

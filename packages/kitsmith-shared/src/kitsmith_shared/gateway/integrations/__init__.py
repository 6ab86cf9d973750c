"""Integration (kit consumer) gateway.

Integrations are the running workloads that reference kits. Kit usage is
derived from them and squash switches them to flattened images.
"""

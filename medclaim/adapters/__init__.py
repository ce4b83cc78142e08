"""Adapters layer for the medical claim registry.

Adapters implement the Port interfaces defined in the domain layer and
translate between domain models and external systems (databases, the
content store).
"""

"""MedClaim Registry.

Medical record and insurance claim registry with role-based authorization
and an exactly-once claim approval workflow.
"""

__version__ = "1.0.0"

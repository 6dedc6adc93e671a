"""
Identifier generators for the billing pipeline.
"""

from insurance_billing.generators.id_generator import IDGenerator

__all__ = ["IDGenerator"]

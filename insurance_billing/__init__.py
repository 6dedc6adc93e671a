"""
Insurance Billing - automated invoice generation for vehicle insurance policies.

Computes what each policy owes for a billing period, records the invoice,
renders its PDF and enqueues a customer notification.
"""

__version__ = "0.1.0"

"""
Webhooks module - inbound form and integration-test harness events.

This module handles:
- Signature verification of inbound webhook bodies
- Validation of the ``action`` tagged union
- Dispatch to application submission and integration test step handlers
"""

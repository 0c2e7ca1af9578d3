"""
Integrations module - end-to-end integration tests of a developer's GAS WebApp.

This module handles:
- IntegrationTest tracking (steps, progress, failures)
- Triggering the GAS WebApp under test
- Client-side polling until a run finishes
"""

"""
Applications module - EA license applications and their lifecycle.

This module handles:
- EAApplication entity and its status state machine
- Approval with a deferred, cancellable license notification
- License key sealing and delivery
- Application status history
"""

"""
SupportDesk Engine

Customer-support ticketing core with:
- Three account roles (business, employee, customer)
- First-come ticket claiming with atomic compare-and-set
- Monotonic escalation that remembers the prior assignee
- Employee invitations
- Chat with forward-only delivery status
- Append-only notes and one-per-ticket feedback
"""

__version__ = "0.1.0"

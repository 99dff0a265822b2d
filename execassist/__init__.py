"""
execassist

Human-in-the-loop review of AI-suggested decisions and tasks.

Philosophy:
- AI output is a suggestion until a human approves it
- The original suggestion is never overwritten: edits are recorded beside it
- Approved, rejected: both are terminal
- Expected failures are results, not exceptions

Usage:
    from execassist.common import load_config
    from execassist.common.schemas import create_decision_suggestion, SourceReference
    from execassist.review import ApprovalQueue, ApprovalWorkflowService
"""

__version__ = "0.1.0"

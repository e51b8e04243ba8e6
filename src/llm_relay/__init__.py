"""llm-relay: provider-agnostic conversational backend.

Adapts stored conversations to each LLM provider's wire shape, streams
partial output with cancellation, and runs one tool continuation round.
"""

__version__ = "0.3.0"

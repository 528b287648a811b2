"""VEA business assistant: conversational orchestration service."""

__version__ = "0.1.0"

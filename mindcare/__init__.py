"""
MindCare - Multilingual wellness chat assistant.

A conversation system that keeps chat sessions with language tagging,
delegates replies to a pluggable response engine, and drives a retrying
voice-input controller on top of a continuous speech capability.
"""

__version__ = "1.0.0"

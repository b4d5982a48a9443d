"""
Chat Auto-Responder - Rule-based automatic replies for chat messages
===================================================================

Evaluates incoming chat messages against configurable rule sets and
decides whether to reply, subject to per-response cooldowns and hit
rates. The configuration is a YAML file that is reloaded live when it
changes.

Author: Chat Auto-Responder Team
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Chat Auto-Responder Team"
__license__ = "MIT"

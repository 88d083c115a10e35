"""
gemini-relay - chat relay to Gemini with API key rotation
"""

__version__ = "0.1.0"
__logo__ = "♊"

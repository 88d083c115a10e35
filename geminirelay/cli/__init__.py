"""CLI module for gemini-relay."""

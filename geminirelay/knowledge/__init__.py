"""Persona / knowledge loading."""

from geminirelay.knowledge.persona import load_persona

__all__ = ["load_persona"]

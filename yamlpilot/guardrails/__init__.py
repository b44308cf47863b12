"""Guardrails applied to content crossing the LLM boundary."""

"""yamlpilot: LLM-backed YAML analysis service with GitHub webhook monitoring."""

__version__ = "0.1.0"

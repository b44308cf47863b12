"""GitHub webhook inbound system.

Receives push and pull_request events. Each delivery is signature-verified,
deduplicated, and processed in the background: changed YAML files are
fetched, analyzed by the LLM, and recorded in the event log.
"""

"""Prompt templates for each LLM task.

Each builder returns a (system_prompt, user_prompt) pair. Untrusted content
is always wrapped with wrap_user_input() and is expected to be redacted
by the caller.
"""

from __future__ import annotations

import yaml

from yamlpilot.guardrails.input_validator import wrap_user_input

ANALYZE_SYSTEM_PROMPT = (
    "You are an expert DevOps engineer who analyzes YAML files. "
    "Always respond with valid JSON."
)

ANALYZE_INSTRUCTIONS = """\
You are an expert DevOps engineer. The following is a YAML file. Analyze it \
for errors, misconfigurations, and bad practices. Respond with a JSON object \
with three keys:
1. corrected_yaml (the full corrected YAML file),
2. explanation (a detailed, step-by-step explanation of what was wrong and why you fixed it), and
3. is_correct (a boolean - true if the original YAML was already correct, false if issues were found).

Mark every line you changed in corrected_yaml with a trailing "# FIX:" comment \
that says what changed. Keep redacted placeholders such as [REDACTED_AWS_KEY] as-is."""

GENERATE_SYSTEM_PROMPT = (
    "You are an expert DevOps engineer who writes production-ready Docker Compose, "
    "GitHub Actions, and Kubernetes YAML. Always respond with valid JSON."
)

GENERATE_INSTRUCTIONS = """\
Generate a production-ready YAML file for the request below. Follow security \
best practices: pin image and action versions, never inline secrets (reference \
environment variables or secret stores instead), and set explicit resource \
limits and permissions where the format supports them.

Respond with a JSON object with two keys:
1. generated_yaml (the complete YAML file, no Markdown fences), and
2. explanation (a short description of the choices you made)."""

EXPLAIN_SYSTEM_PROMPT = (
    "You are a senior engineer who explains code to colleagues in clear, plain English. "
    "Always respond with valid JSON."
)

EXPLAIN_INSTRUCTIONS = """\
Explain what the following code does. Cover its purpose, walk through the \
important parts step by step, and point out anything surprising or risky. \
Use Markdown for structure.

Respond with a JSON object with one key: explanation."""

SUMMARIZE_DIFF_SYSTEM_PROMPT = (
    "You are a code reviewer who summarizes changes for a pull request audience. "
    "Always respond with valid JSON."
)

SUMMARIZE_DIFF_INSTRUCTIONS = """\
Summarize the unified diff below. Focus on behavior changes, with extra care \
for CI/CD workflows and deployment configuration.

Respond with a JSON object with three keys:
1. summary (2-6 sentences),
2. risks (an array of strings, each one a concrete risk a reviewer should check; empty if none), and
3. yaml_files (an array of the YAML file paths the diff touches)."""


def yaml_syntax_error(content: str) -> str | None:
    """Return a one-line PyYAML error for content, or None if it parses."""
    try:
        list(yaml.safe_load_all(content))
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        problem = getattr(e, "problem", None) or str(e).splitlines()[0]
        if mark is not None:
            return f"line {mark.line + 1}, column {mark.column + 1}: {problem}"
        return problem
    return None


def build_analyze_prompt(content: str, filename: str = "") -> tuple[str, str]:
    parts = [ANALYZE_INSTRUCTIONS]
    if filename:
        parts.append(f"File name: {filename}")
    syntax_error = yaml_syntax_error(content)
    if syntax_error:
        parts.append(f"A YAML parser reported this syntax error: {syntax_error}")
    parts.append("YAML file to analyze:\n" + wrap_user_input("yaml_file", content))
    return ANALYZE_SYSTEM_PROMPT, "\n\n".join(parts)


def build_generate_prompt(request: str) -> tuple[str, str]:
    return GENERATE_SYSTEM_PROMPT, (
        f"{GENERATE_INSTRUCTIONS}\n\nRequest:\n{wrap_user_input('user_request', request)}"
    )


def build_explain_prompt(code: str) -> tuple[str, str]:
    return EXPLAIN_SYSTEM_PROMPT, (
        f"{EXPLAIN_INSTRUCTIONS}\n\nCode:\n{wrap_user_input('code_snippet', code)}"
    )


def build_diff_summary_prompt(diff: str, title: str = "") -> tuple[str, str]:
    parts = [SUMMARIZE_DIFF_INSTRUCTIONS]
    if title:
        parts.append(f"Pull request title: {title}")
    parts.append("Diff:\n" + wrap_user_input("diff", diff))
    return SUMMARIZE_DIFF_SYSTEM_PROMPT, "\n\n".join(parts)

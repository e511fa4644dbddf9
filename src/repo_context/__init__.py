"""repo_context — select and render a source tree as a single LLM context file."""

__version__ = "0.1.0"

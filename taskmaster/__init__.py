"""Turn product requirements documents into task backlogs with an LLM."""

__version__ = "0.1.0"

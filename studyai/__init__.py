"""Study assistant AI generation orchestration."""

__version__ = "0.1.0"

"""Release orchestration for multi-component workspaces."""

__version__ = "0.1.0"

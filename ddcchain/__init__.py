"""In-memory bridge voting, DDC cluster management, call weights and chain-spec helpers."""

__version__ = "0.1.0"
"""gitscout - sandboxed repository exploration tools for a GitHub search assistant."""

__version__ = "0.3.0"

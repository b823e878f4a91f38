"""Contact book stored as a JSON file in a GitHub repository."""

__version__ = "1.0.0"

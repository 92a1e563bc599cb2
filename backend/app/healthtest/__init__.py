"""HealthTest - requirement-to-test-case generation."""

__version__ = "0.1.0"

"""DPW Validation Tool: API integration layer for validation submissions."""

__version__ = "3.2.0"

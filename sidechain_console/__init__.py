"""Setup and onboarding console for a sidechain deployment."""

__version__ = "1.0.0"

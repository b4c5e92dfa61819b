"""Version information for SafetyTrack."""

__version__ = "0.1.0"

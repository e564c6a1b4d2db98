"""reliz: semantic version bump, changelog and git release automation."""

__version__ = "0.1.0"

"""Voice keyboard: type what you say into whatever window has focus."""

__version__ = "0.1.0"

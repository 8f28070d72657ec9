"""Local WiFi File Share: browser-based file exchange between devices on the same network."""

__version__ = "1.0.0"

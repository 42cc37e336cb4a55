"""Hub Verdi membership signup API."""

__version__ = "1.0.0"

"""GPlayBot - Google Play Music provider and station suggester for a music bot."""

__version__ = "0.3.0"

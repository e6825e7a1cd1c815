"""PageScope: single-page browser scraping with structured extraction."""

__version__ = "0.1.0"

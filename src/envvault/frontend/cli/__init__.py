"""Local command line frontend."""

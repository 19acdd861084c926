"""Services package for the conversion engine."""

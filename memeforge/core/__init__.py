"""Command line parsing and application wiring."""

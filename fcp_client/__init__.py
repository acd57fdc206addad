"""Command-line client and configuration for the FCP library."""

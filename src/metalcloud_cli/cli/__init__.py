"""CLI for Metal Cloud."""

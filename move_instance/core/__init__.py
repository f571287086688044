"""Core building blocks for instance moves."""

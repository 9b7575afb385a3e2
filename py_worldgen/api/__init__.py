"""HTTP interface to world generation."""

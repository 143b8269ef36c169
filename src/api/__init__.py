"""HTTP surface for ClipShare."""

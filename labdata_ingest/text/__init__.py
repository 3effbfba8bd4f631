"""Text normalization utilities and field combinators."""

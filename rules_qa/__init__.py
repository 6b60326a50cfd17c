"""Question answering over the water-polo rules corpus."""

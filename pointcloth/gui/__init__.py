"""PyQt5 live display for point-light cloth trials."""

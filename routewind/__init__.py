"""Wind and terrain "suffer" scoring for cycling routes."""

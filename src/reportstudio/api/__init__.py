"""HTTP surface for the NLQ engine."""

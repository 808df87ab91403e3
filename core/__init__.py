"""Domain logic for the PriceLens asset chart."""

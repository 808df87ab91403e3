"""PriceLens desktop application."""

"""HTTP surface for the Plumbers Portal billing webhook."""

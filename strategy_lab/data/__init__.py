"""Historical bar sources consumed by the simulation engine."""

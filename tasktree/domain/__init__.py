"""Domain layer: pure models and functions for project task trees."""

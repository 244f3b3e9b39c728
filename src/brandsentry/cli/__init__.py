"""brandsentry command-line interface."""

"""Language model agents for portfolio narrative analysis."""

"""Session registry and external speech gateways."""

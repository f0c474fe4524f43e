"""Domain layer: the shared radio state machine and its content providers."""

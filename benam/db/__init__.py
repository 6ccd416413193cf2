"""Job store persistence."""

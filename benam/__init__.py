"""Ben AM: assembles a morning wake-up song with its DJ message into one playable file."""

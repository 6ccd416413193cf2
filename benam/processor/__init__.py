"""Media assembly pipeline: acquisition, synthesis, normalization, assembly."""

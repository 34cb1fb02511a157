"""Live session broker: rooms, join credentials and room recordings."""

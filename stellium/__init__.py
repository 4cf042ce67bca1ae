"""Credit-gated content delivery engine for the Stellium astrology app."""

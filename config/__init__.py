"""Configuration for the EasyTable client."""

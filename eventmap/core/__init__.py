"""Core infrastructure for eventmap: configuration, HTTP clients, time, health."""

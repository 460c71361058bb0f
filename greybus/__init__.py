"""Greybus operation messages, Lights, Audio and Loopback payloads, cport registry, controller bindings, TLS credentials, multiplexed TCP and serial transports, and manifest sources."""

__version__ = "0.1.0"
"""
Relaycast gateway service.

Serves the Socket.IO session transport, the OAuth callback, health and
metrics endpoints, and coordinates one relay plus one chat subsystem per
connected browser session.
"""

"""Outgoing email: settings, transport and message composition."""

"""Outbound federation: ActivityStreams objects, activity dispatch and delivery transports."""

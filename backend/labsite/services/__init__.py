"""Outbound integrations: email, geolocation and external feeds."""

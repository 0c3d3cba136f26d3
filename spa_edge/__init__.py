"""Edge process serving a static web bundle and forwarding /api to an upstream."""

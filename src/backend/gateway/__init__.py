"""API gateway forwarding /api routes to the assessment backend."""

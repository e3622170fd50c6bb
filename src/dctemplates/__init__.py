"""dctemplates: build and smoke-test devcontainer templates against Podman or Docker."""

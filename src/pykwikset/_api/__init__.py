"""Endpoint modules for the Kwikset REST API and the Cognito login flow."""

"""Constellation CLI - bootstrap and upgrade confidential Kubernetes clusters."""

"""Provider-agnostic blob storage service."""

"""HTTP plumbing: problem+json rendering, error mapping and request ids."""

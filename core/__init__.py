"""Core building blocks: models, errors, Onshape auth and storage clients."""

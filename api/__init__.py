"""api/ -- HTTP layer: app factory, routes, request/response models, rate limiting."""

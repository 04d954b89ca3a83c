"""
Application wiring: lifespan, middlewares, CORS, exception handlers and
request dependencies.
"""

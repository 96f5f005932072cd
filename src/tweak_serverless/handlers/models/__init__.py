from tweak_serverless.handlers.models.env_vars import FacadeEnvVars, get_facade_env_vars

__all__ = ["FacadeEnvVars", "get_facade_env_vars"]

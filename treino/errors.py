# treino/errors.py


class ConfigurationError(RuntimeError):
    """Raised when a handler needs settings that are not configured."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            f"Missing environment variables: {', '.join(self.missing)}"
        )


def require_settings(config, *names):
    """Return the requested config values, failing fast on any missing one."""
    missing = [name for name in names if not config.get(name)]
    if missing:
        raise ConfigurationError(missing)
    return [config.get(name) for name in names]

class OrganizerError(Exception):
    pass


class ConfigError(OrganizerError):
    pass


class TransportError(OrganizerError):
    """HTTP-level failure talking to Drive or Gemini."""


class FatalRunError(OrganizerError):
    pass


class NoModelAvailable(FatalRunError):
    pass

from holdover.models.session import EndSessionRequest, PreferencesUpdate, StartSessionRequest

__all__ = ["StartSessionRequest", "EndSessionRequest", "PreferencesUpdate"]

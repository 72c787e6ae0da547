from imagine_relay.clients.base import (
    ClientMessage,
    ClientNotReadyError,
    ClientRequestError,
    ClientTimeoutError,
    ConfigurationError,
    ImageClient,
    ImageClientError,
    JobOptions,
    LoadingCallback,
)
from imagine_relay.clients.discord import DiscordImageClient

__all__ = [
    "ClientMessage",
    "ClientNotReadyError",
    "ClientRequestError",
    "ClientTimeoutError",
    "ConfigurationError",
    "DiscordImageClient",
    "ImageClient",
    "ImageClientError",
    "JobOptions",
    "LoadingCallback",
]

"""Base class for HTTP clients."""

import logging
import httpx

from ..application.exceptions import ConfigurationError


class BaseClient:
    """A base client that handles an HTTP client and its identification."""

    def __init__(self, client: httpx.Client, user_agent: str):
        """
        Initializes the base client.

        Args:
            client: An instance of httpx.Client.
            user_agent: The User-Agent sent with every request. Archive hosts
                        reject anonymous clients, so it must name the tool
                        and a contact.

        Raises:
            ConfigurationError: If the user agent is missing or appears to be
                                a placeholder.
        """

        if not user_agent or "YOUR_" in user_agent.upper():
            raise ConfigurationError(
                f"User agent for {self.__class__.__name__} is missing "
                f"or is a placeholder. Please check your config files."
            )

        self.client = client
        self.user_agent = user_agent
        self.headers = {"User-Agent": user_agent}
        self.logger = logging.getLogger(self.__class__.__name__)

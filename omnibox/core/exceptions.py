"""
Domain exceptions raised by the senders, the factory and the contact resolver.
"""


class OmniboxError(Exception):
    """Base class for all omnibox errors"""


class ChannelConfigurationError(OmniboxError):
    """A channel sender was requested but its provider credentials are missing"""


class UnsupportedChannelError(OmniboxError):
    def __init__(self, channel):
        self.channel = channel
        super().__init__(f"Unsupported channel: {channel}")


class ContactNotFoundError(OmniboxError):
    def __init__(self, contact_id):
        self.contact_id = contact_id
        super().__init__(f"Contact not found: {contact_id}")

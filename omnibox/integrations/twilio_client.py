"""
Read-only Twilio account lookups for the settings screen
"""
import asyncio
import logging
from typing import Optional, Dict, Any, List

from twilio.rest import Client as TwilioClient

from omnibox.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SANDBOX_JOIN_HINT = "Check Twilio Console → Messaging → Try it out → Send a WhatsApp message"

TRIAL_RESTRICTIONS = {
    "canOnlySendToVerified": True,
    "messagePrefix": "Sent from a Twilio trial account",
    "upgradeRequired": True,
}


class TwilioAccountService:
    def __init__(self, client: TwilioClient, config: Optional[Settings] = None):
        self.client = client
        self.settings = config or default_settings

    def _fetch_account(self):
        return self.client.api.accounts(self.settings.TWILIO_ACCOUNT_SID).fetch()

    async def get_account_info(self) -> Optional[Dict[str, Any]]:
        try:
            account = await asyncio.to_thread(self._fetch_account)
        except Exception as e:
            logger.error(f"Error fetching Twilio account info: {e}")
            return None
        return {
            "accountSid": account.sid,
            "friendlyName": account.friendly_name,
            "status": account.status,
            "type": account.type,
        }

    async def get_phone_numbers(self) -> List[Dict[str, Any]]:
        try:
            numbers = await asyncio.to_thread(self.client.incoming_phone_numbers.list)
        except Exception as e:
            logger.error(f"Error fetching Twilio phone numbers: {e}")
            return []

        result = []
        for number in numbers:
            capabilities = number.capabilities or {}
            result.append({
                "sid": number.sid,
                "phoneNumber": number.phone_number,
                "friendlyName": number.friendly_name,
                "capabilities": {
                    "sms": bool(capabilities.get("sms", False)),
                    "mms": bool(capabilities.get("mms", False)),
                    "voice": bool(capabilities.get("voice", False)),
                },
            })
        return result

    @staticmethod
    def is_trial_account(account_info: Optional[Dict[str, Any]]) -> bool:
        if not account_info:
            return False
        return account_info.get("type") == "Trial" or account_info.get("status") == "trial"

    def get_whatsapp_sandbox_info(self) -> Dict[str, str]:
        # The join code is only visible in the Twilio Console
        return {
            "sandboxNumber": self.settings.TWILIO_WHATSAPP_NUMBER,
            "joinCode": SANDBOX_JOIN_HINT,
        }

    async def get_overview(self) -> Dict[str, Any]:
        account, phone_numbers = await asyncio.gather(
            self.get_account_info(),
            self.get_phone_numbers(),
        )
        is_trial = self.is_trial_account(account)
        return {
            "account": account,
            "phoneNumbers": phone_numbers,
            "isTrial": is_trial,
            "whatsappSandbox": self.get_whatsapp_sandbox_info(),
            "restrictions": dict(TRIAL_RESTRICTIONS) if is_trial else None,
        }

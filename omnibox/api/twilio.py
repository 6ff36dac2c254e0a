from fastapi import APIRouter, Depends, HTTPException
import logging

from omnibox.core.exceptions import ChannelConfigurationError
from omnibox.integrations.factory import SenderFactory, get_sender_factory
from omnibox.integrations.twilio_client import TwilioAccountService

router = APIRouter(prefix="/twilio", tags=["twilio"])
logger = logging.getLogger(__name__)


@router.get("/account")
async def get_twilio_account(factory: SenderFactory = Depends(get_sender_factory)):
    """Account, phone numbers, trial status and WhatsApp sandbox details"""
    try:
        service = TwilioAccountService(factory.twilio_client, factory.settings)
    except ChannelConfigurationError as e:
        logger.error(f"Error fetching Twilio account info: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch Twilio account information")

    return await service.get_overview()

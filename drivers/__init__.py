from abc import ABC, abstractmethod

from services.message import DeliveryReceipt, OutgoingAttachment


class BaseDeliveryClient(ABC):
    """Abstract base class for chat platform delivery clients."""

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> DeliveryReceipt:
        """Send *text* to *chat_id* and return a receipt for the new message."""

    @abstractmethod
    async def send_attachment(
        self, chat_id: str, receipt: DeliveryReceipt, attachment: OutgoingAttachment
    ) -> None:
        """Send *attachment* to *chat_id* as a reply to the message in *receipt*."""

    async def close(self) -> None:
        """Release network resources.  Optional."""

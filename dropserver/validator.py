# dropserver/validator.py
from typing import List, Optional, Sequence

from dropserver.errors import AuthRejection, ValidationRejection
from dropserver.sanitizer import sanitize
from dropserver.schemas import AcceptedDrop, DropSubmission


class SubmissionValidator:
    """Gate and per-item filter for plugin submissions."""

    def __init__(self, plugin_marker="DropLogger-Plugin", max_quantity=100):
        self.plugin_marker = plugin_marker
        self.max_quantity = max_quantity

    def check_client(self, client_signature: Optional[str]) -> None:
        # Authentication gate, not a data-quality check
        if not client_signature or self.plugin_marker not in client_signature:
            raise AuthRejection()

    def check_batch(self, batch: Sequence[DropSubmission]) -> None:
        if not batch:
            raise ValidationRejection()

    def is_valid_quantity(self, quantity: int) -> bool:
        return 0 < quantity < self.max_quantity

    def accept(self, batch: Sequence[DropSubmission]) -> List[AcceptedDrop]:
        """
        Drop items with an out-of-range quantity and sanitize the free-text
        fields of the rest. Rejected items are skipped silently.
        """
        accepted = []
        for item in batch:
            if not self.is_valid_quantity(item.quantity):
                continue
            accepted.append(AcceptedDrop(
                zone_id=item.zone_id,
                item_name=sanitize(item.item_name),
                quantity=item.quantity,
                is_hq=item.is_hq,
                reporter_hash=item.user_hash,
                source_mob=sanitize(item.source_mob) if item.source_mob is not None else None,
                item_id=item.item_id,
                source_mob_id=item.source_mob_id,
            ))
        return accepted

    def validate(self, batch: Sequence[DropSubmission], client_signature: Optional[str]) -> List[AcceptedDrop]:
        self.check_client(client_signature)
        self.check_batch(batch)
        return self.accept(batch)

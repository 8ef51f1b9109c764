"""
QrRenderer -- PNG rendering of a credential's verification URL.

Responsibility:
    Encodes ``<base_url>/verify/<token>`` as a square PNG and caches the
    bytes on the record.  The cache is cleared by every transition or edit
    that changes or drops the token, so a cached image always matches the
    live token.

Failure modes:
    - RecordNotFoundError.
    - InvalidTransitionError when the record is not APPROVED (no token).
    - ValueError for an empty base URL.
"""

from io import BytesIO
from typing import Final
from uuid import UUID

import qrcode
from PIL import Image
from sqlalchemy.orm import Session

from accreditation_kernel.domain.clock import Clock
from accreditation_kernel.domain.status import AccreditationStatus
from accreditation_kernel.exceptions import InvalidTransitionError, RecordNotFoundError
from accreditation_kernel.logging_config import get_logger
from accreditation_kernel.repositories.accreditation_repository import SqlAccreditationRepository
from accreditation_kernel.repositories.base import AccreditationRepository
from accreditation_kernel.services.base import BaseService

logger = get_logger("services.qr_renderer")

_ERROR_CORRECTION: Final = qrcode.constants.ERROR_CORRECT_H
DEFAULT_IMAGE_SIZE: Final = 400
DEFAULT_BORDER: Final = 2


def verification_url(base_url: str, token: str) -> str:
    base = (base_url or "").rstrip("/")
    if not base:
        raise ValueError("QR base URL must be a non-empty string.")
    return f"{base}/verify/{token}"


def render_png(data: str, *, size: int = DEFAULT_IMAGE_SIZE, border: int = DEFAULT_BORDER) -> bytes:
    """Return PNG bytes of a ``size`` x ``size`` QR code encoding ``data``."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=_ERROR_CORRECTION,
        box_size=10,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    image = qr.make_image(fill_color="black", back_color="white")
    if not isinstance(image, Image.Image):
        image = image.get_image()
    image = image.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class QrRenderer(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        records: AccreditationRepository | None = None,
        image_size: int = DEFAULT_IMAGE_SIZE,
    ):
        super().__init__(session, clock)
        self.records = records or SqlAccreditationRepository(session)
        self.image_size = image_size

    def render(self, record_id: UUID, base_url: str) -> bytes:
        model = self.records.get(record_id)
        if model is None:
            raise RecordNotFoundError(str(record_id))
        if model.status != AccreditationStatus.APPROVED.value or not model.qr_token:
            raise InvalidTransitionError(
                record_id=str(record_id),
                action="render_qr",
                actual_status=model.status,
                expected_status=AccreditationStatus.APPROVED.value,
            )

        if model.qr_code_image:
            logger.debug("qr_image_cache_hit", extra={"record_id": str(record_id)})
            return model.qr_code_image

        png = render_png(verification_url(base_url, model.qr_token), size=self.image_size)
        affected = self.records.conditional_update(
            model.id,
            AccreditationStatus.APPROVED,
            {"qr_code_image": png},
        )
        if affected == 0:
            current = self.records.get(record_id)
            if current is None:
                raise RecordNotFoundError(str(record_id))
            raise InvalidTransitionError(
                record_id=str(record_id),
                action="render_qr",
                actual_status=current.status,
                expected_status=AccreditationStatus.APPROVED.value,
            )

        logger.info("qr_image_rendered", extra={"record_id": str(record_id), "bytes": len(png)})
        return png

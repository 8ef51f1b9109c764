"""
Config -> Kernel Bridges.

Turns a ``KernelSettings`` into a wired ``AccreditationOperations``.  This
lives in accreditation_config (the producer) because the kernel never
imports accreditation_config.

Usage:
    from accreditation_config import get_active_settings
    from accreditation_config.bridges import build_operations

    ops = build_operations(get_active_settings(), create_schema=True)
    ops.verify(token, actor_id="gate-3")
"""

from __future__ import annotations

from accreditation_config.schema import KernelSettings
from accreditation_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from accreditation_kernel.domain.clock import Clock
from accreditation_kernel.logging_config import configure_logging
from accreditation_kernel.services.operations import AccreditationOperations


def init_engine_from_settings(settings: KernelSettings):
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )


def build_operations(
    settings: KernelSettings,
    clock: Clock | None = None,
    *,
    create_schema: bool = False,
) -> AccreditationOperations:
    """Configure logging, initialize the engine and return the facade."""
    configure_logging(level=settings.logging.level)
    init_engine_from_settings(settings)
    if create_schema:
        create_tables()

    return AccreditationOperations(
        get_session_factory(),
        clock,
        token_bytes=settings.tokens.num_bytes,
        token_attempts=settings.tokens.max_attempts,
        number_prefix=settings.numbering.prefix,
        number_width=settings.numbering.width,
        qr_base_url=settings.qr.base_url,
        qr_image_size=settings.qr.image_size,
    )

"""
Accreditation kernel: credential lifecycle, QR token issuance, gate
verification and the append-only audit trail.

The public surface is ``accreditation_kernel.services.AccreditationOperations``;
everything else is reachable for tests and wiring.
"""

__version__ = "0.1.0"

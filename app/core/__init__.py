from app.core.logging import get_logger, request_id_ctx
from app.core.signing import CallbackVerificationError, generate_checksum, verify_callback

__all__ = ["get_logger", "request_id_ctx", "CallbackVerificationError", "generate_checksum", "verify_callback"]

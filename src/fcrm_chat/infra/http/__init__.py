"""HTTP infrastructure for fcrm_chat."""

from fcrm_chat.infra.http.gateway import ProgressCallback, RestGateway, extract_error_message

__all__ = ["ProgressCallback", "RestGateway", "extract_error_message"]

"""Infrastructure adapters for fcrm_chat: HTTP, realtime and storage."""

from nrega_api.services.retrieval_service import CachePolicy, RetrievalService, create_retrieval_service

__all__ = ["CachePolicy", "RetrievalService", "create_retrieval_service"]

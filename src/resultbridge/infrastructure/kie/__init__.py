from src.resultbridge.infrastructure.kie.client import KieProviderClient

__all__ = ["KieProviderClient"]

from monica_client.auth.manager import AuthManager, AuthState, ClientFactory

__all__ = ["AuthManager", "AuthState", "ClientFactory"]
